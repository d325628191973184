"""Packet matching statements for OpenFlow flows."""

from __future__ import annotations

import abc
import ipaddress
import string
from dataclasses import dataclass, field
from typing import Union

SOURCE = "src"
DESTINATION = "dst"

ETHERNET_ADDR_LEN = 6

#: Special VLAN value which matches only packets without a VLAN tag.
VLAN_NONE = 0xFFFF

_HEX_DIGITS = frozenset(string.hexdigits)
_MAC_LENGTHS = (6, 8, 20)

_IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class InvalidMatchError(ValueError):
    """A match holds a value which cannot be rendered as text."""


class Match(abc.ABC):
    """A packet matching statement which can be rendered in OpenFlow text form."""

    @abc.abstractmethod
    def marshal_text(self) -> str:
        """Return the textual form of the match."""


def parse_mac(text: str) -> bytes:
    """Parse a hardware address in colon, hyphen or dotted notation."""
    error = InvalidMatchError(f"address {text}: invalid MAC address")
    if len(text) < 14:
        raise error

    if text[2] in ":-":
        if (len(text) + 1) % 3:
            raise error
        count = (len(text) + 1) // 3
        groups = text.split(text[2])
        width = 2
    elif text[4] == ".":
        if (len(text) + 1) % 5:
            raise error
        count = 2 * (len(text) + 1) // 5
        groups = text.split(".")
        width = 4
    else:
        raise error

    if count not in _MAC_LENGTHS or len(groups) * width // 2 != count:
        raise error
    if any(len(g) != width or not set(g) <= _HEX_DIGITS for g in groups):
        raise error
    return bytes.fromhex("".join(groups))


def _mac_string(addr: bytes) -> str:
    return ":".join(f"{b:02x}" for b in addr)


def _check_uint(value: int, bits: int) -> int:
    if not isinstance(value, int) or not 0 <= value < (1 << bits):
        raise ValueError(f"{value!r} does not fit in an unsigned {bits}-bit integer")
    return value


def _valid_vlan_vid(vid: int) -> bool:
    return 0 <= vid <= 0x0FFF


def _valid_vlan_pcp(pcp: int) -> bool:
    return 0 <= pcp <= 7


def _parse_ip(text: str) -> _IPAddress | None:
    if "%" in text:
        return None
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _parse_cidr(text: str) -> _IPAddress | None:
    addr_text, sep, prefix = text.partition("/")
    if not sep:
        return None
    addr = _parse_ip(addr_text)
    if addr is None:
        return None
    if not prefix or not all(c in string.digits for c in prefix):
        return None
    limit = 32 if isinstance(addr, ipaddress.IPv4Address) else 128
    if int(prefix) > limit:
        return None
    return addr


def _is_ipv4(addr: _IPAddress) -> bool:
    if isinstance(addr, ipaddress.IPv4Address):
        return True
    return addr.ipv4_mapped is not None


def _ip_string(addr: _IPAddress) -> str:
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def _match_ipv4_address_or_cidr(key: str, ip: str) -> str:
    error = InvalidMatchError(f'"{ip}" is not a valid IPv4 address or IPv4 CIDR block')
    addr = _parse_cidr(ip)
    if addr is not None:
        if not _is_ipv4(addr):
            raise error
        return f"{key}={ip}"
    addr = _parse_ip(ip)
    if addr is not None and _is_ipv4(addr):
        return f"{key}={_ip_string(addr)}"
    raise error


def _match_ipv6_address_or_cidr(key: str, ip: str) -> str:
    error = InvalidMatchError(f'"{ip}" is not a valid IPv6 address or IPv6 CIDR block')
    addr = _parse_cidr(ip)
    if addr is not None:
        if _is_ipv4(addr):
            raise error
        return f"{key}={ip}"
    addr = _parse_ip(ip)
    if addr is not None and not _is_ipv4(addr):
        return f"{key}={_ip_string(addr)}"
    raise error


def _match_ethernet_hardware_address(key: str, addr: bytes) -> str:
    if len(addr) != ETHERNET_ADDR_LEN:
        raise InvalidMatchError(
            f"hardware address must be {ETHERNET_ADDR_LEN} octets, but got {len(addr)}"
        )
    return f"{key}={_mac_string(addr)}"


@dataclass(frozen=True, repr=False)
class _IntMatch(Match):
    """A match of a named field against a decimal integer."""

    key: str
    value: int
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        return f"{self.key}={self.value}"

    def __repr__(self) -> str:
        return f"{self.name}({self.value})"


@dataclass(frozen=True, repr=False)
class _DataLinkMatch(Match):
    srcdst: str
    addr: str

    def marshal_text(self) -> str:
        hw_text, sep, wildcard_text = self.addr.partition("/")
        hw_addr = parse_mac(hw_text)
        if len(hw_addr) != ETHERNET_ADDR_LEN:
            raise InvalidMatchError(
                f"hardware address must be {ETHERNET_ADDR_LEN} octets, but got {len(hw_addr)}"
            )
        if not sep:
            return f"dl_{self.srcdst}={_mac_string(hw_addr)}"

        wildcard = parse_mac(wildcard_text)
        if len(wildcard) != ETHERNET_ADDR_LEN:
            raise InvalidMatchError(
                f"wildcard mask must be {ETHERNET_ADDR_LEN} octets, but got {len(wildcard)}"
            )
        return f"dl_{self.srcdst}={_mac_string(hw_addr)}/{_mac_string(wildcard)}"

    def __repr__(self) -> str:
        name = "data_link_source" if self.srcdst == SOURCE else "data_link_destination"
        return f"{name}({self.addr!r})"


@dataclass(frozen=True, repr=False)
class _DataLinkTypeMatch(Match):
    ether_type: int

    def marshal_text(self) -> str:
        return f"dl_type=0x{self.ether_type:04x}"

    def __repr__(self) -> str:
        return f"data_link_type(0x{self.ether_type:04x})"


@dataclass(frozen=True, repr=False)
class _DataLinkVLANMatch(Match):
    vid: int

    def marshal_text(self) -> str:
        if self.vid == VLAN_NONE:
            return "dl_vlan=0xffff"
        if not _valid_vlan_vid(self.vid):
            raise InvalidMatchError("VLAN VID must be in range 0-4095")
        return f"dl_vlan={self.vid}"

    def __repr__(self) -> str:
        if self.vid == VLAN_NONE:
            return "data_link_vlan(VLAN_NONE)"
        return f"data_link_vlan({self.vid})"


@dataclass(frozen=True, repr=False)
class _DataLinkVLANPCPMatch(Match):
    pcp: int

    def marshal_text(self) -> str:
        if not _valid_vlan_pcp(self.pcp):
            raise InvalidMatchError("VLAN PCP must be in range 0-7")
        return f"dl_vlan_pcp={self.pcp}"

    def __repr__(self) -> str:
        return f"data_link_vlan_pcp({self.pcp})"


@dataclass(frozen=True, repr=False)
class _IPv4Match(Match):
    key: str
    ip: str
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        return _match_ipv4_address_or_cidr(self.key, self.ip)

    def __repr__(self) -> str:
        return f"{self.name}({self.ip!r})"


@dataclass(frozen=True, repr=False)
class _IPv6Match(Match):
    key: str
    ip: str
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        return _match_ipv6_address_or_cidr(self.key, self.ip)

    def __repr__(self) -> str:
        return f"{self.name}({self.ip!r})"


@dataclass(frozen=True, repr=False)
class _HardwareAddressMatch(Match):
    key: str
    addr: bytes
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        return _match_ethernet_hardware_address(self.key, self.addr)

    def __repr__(self) -> str:
        return f"{self.name}({self.addr!r})"


def data_link_source(addr: str) -> Match:
    """Match a source hardware address, optionally with a '/'-separated wildcard mask."""
    return _DataLinkMatch(SOURCE, addr)


def data_link_destination(addr: str) -> Match:
    """Match a destination hardware address, optionally with a wildcard mask."""
    return _DataLinkMatch(DESTINATION, addr)


def data_link_type(ether_type: int) -> Match:
    """Match packets with the given EtherType."""
    return _DataLinkTypeMatch(_check_uint(ether_type, 16))


def data_link_vlan(vid: int) -> Match:
    """Match packets with the given VLAN ID, or none when vid is VLAN_NONE."""
    return _DataLinkVLANMatch(vid)


def data_link_vlan_pcp(pcp: int) -> Match:
    """Match packets with the given VLAN priority code point."""
    return _DataLinkVLANPCPMatch(pcp)


def network_source(ip: str) -> Match:
    """Match a source IPv4 address or CIDR block."""
    return _IPv4Match("nw_src", ip, "network_source")


def network_destination(ip: str) -> Match:
    """Match a destination IPv4 address or CIDR block."""
    return _IPv4Match("nw_dst", ip, "network_destination")


def network_ecn(ecn: int) -> Match:
    """Match the explicit congestion notification bits."""
    return _IntMatch("nw_ecn", ecn, "network_ecn")


def network_tos(tos: int) -> Match:
    """Match the network type of service."""
    return _IntMatch("nw_tos", tos, "network_tos")


def network_ttl(ttl: int) -> Match:
    """Match the network time to live."""
    return _IntMatch("nw_ttl", ttl, "network_ttl")


def network_protocol(num: int) -> Match:
    """Match an IP or IPv6 protocol number."""
    return _IntMatch("nw_proto", _check_uint(num, 8), "network_protocol")


def ipv6_source(ip: str) -> Match:
    """Match a source IPv6 address or CIDR block."""
    return _IPv6Match("ipv6_src", ip, "ipv6_source")


def ipv6_destination(ip: str) -> Match:
    """Match a destination IPv6 address or CIDR block."""
    return _IPv6Match("ipv6_dst", ip, "ipv6_destination")


def icmp_type(typ: int) -> Match:
    """Match an ICMP type."""
    return _IntMatch("icmp_type", _check_uint(typ, 8), "icmp_type")


def icmp_code(code: int) -> Match:
    """Match an ICMP code."""
    return _IntMatch("icmp_code", _check_uint(code, 8), "icmp_code")


def icmp6_type(typ: int) -> Match:
    """Match an ICMPv6 type."""
    return _IntMatch("icmpv6_type", _check_uint(typ, 8), "icmp6_type")


def icmp6_code(code: int) -> Match:
    """Match an ICMPv6 code."""
    return _IntMatch("icmpv6_code", _check_uint(code, 8), "icmp6_code")


def in_port_match(port: int) -> Match:
    """Match packets entering through the given switch port."""
    return _IntMatch("in_port", port, "in_port_match")


def neighbor_discovery_target(ip: str) -> Match:
    """Match an IPv6 neighbor discovery target address or CIDR block."""
    return _IPv6Match("nd_target", ip, "neighbor_discovery_target")


def neighbor_discovery_source_link_layer(addr: bytes) -> Match:
    """Match a neighbor solicitation source link-layer address."""
    return _HardwareAddressMatch("nd_sll", bytes(addr), "neighbor_discovery_source_link_layer")


def neighbor_discovery_target_link_layer(addr: bytes) -> Match:
    """Match a neighbor solicitation target link-layer address."""
    return _HardwareAddressMatch("nd_tll", bytes(addr), "neighbor_discovery_target_link_layer")


def arp_operation(oper: int) -> Match:
    """Match an ARP operation."""
    return _IntMatch("arp_op", _check_uint(oper, 16), "arp_operation")


def arp_source_hardware_address(addr: bytes) -> Match:
    """Match an ARP source hardware address."""
    return _HardwareAddressMatch("arp_sha", bytes(addr), "arp_source_hardware_address")


def arp_target_hardware_address(addr: bytes) -> Match:
    """Match an ARP target hardware address."""
    return _HardwareAddressMatch("arp_tha", bytes(addr), "arp_target_hardware_address")


def arp_source_protocol_address(ip: str) -> Match:
    """Match an ARP source protocol IPv4 address or CIDR block."""
    return _IPv4Match("arp_spa", ip, "arp_source_protocol_address")


def arp_target_protocol_address(ip: str) -> Match:
    """Match an ARP target protocol IPv4 address or CIDR block."""
    return _IPv4Match("arp_tpa", ip, "arp_target_protocol_address")