"""Further packet matches: tunnels, ports, connection tracking, flags and masks."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Union

from .match import (
    DESTINATION,
    SOURCE,
    InvalidMatchError,
    Match,
    _check_uint,
    _IntMatch,
    _IPv4Match,
)

_IPV6_LABEL_MAX = 0xFFFFF
_PORT_MAX = 0xFFFF


class CTState(str, Enum):
    """Connection tracking state flags."""

    NEW = "new"
    ESTABLISHED = "est"
    RELATED = "rel"
    REPLY = "rpl"
    INVALID = "inv"
    TRACKED = "trk"


class TCPFlag(str, Enum):
    """Flags carried in the TCP header."""

    URG = "urg"
    ACK = "ack"
    PSH = "psh"
    RST = "rst"
    SYN = "syn"
    FIN = "fin"


class IPFragFlag(str, Enum):
    """IP fragmentation match values."""

    YES = "yes"
    NO = "no"
    FIRST = "first"
    LATER = "later"
    NOT_LATER = "not_later"


def _text(value: Union[str, Enum]) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _quoted(values: Tuple[str, ...]) -> str:
    return ", ".join(json.dumps(v) for v in values)


def bitwise_match(start: int, end: int) -> List[Tuple[int, int]]:
    """Split an inclusive port range into (value, mask) pairs covering it exactly."""
    _check_uint(start, 16)
    _check_uint(end, 16)
    if start == 0 or start > end:
        raise InvalidMatchError(f"invalid port range {start}-{end}")

    ranges: List[Tuple[int, int]] = []
    current = start
    while current <= end:
        size = 1
        while current % (size * 2) == 0 and current + size * 2 - 1 <= end:
            size *= 2
        ranges.append((current, _PORT_MAX & ~(size - 1)))
        current += size
    return ranges


@dataclass(frozen=True, repr=False)
class _PortMatch(Match):
    """A transport (tp_) or UDP (udp_) port match with an optional mask."""

    prefix: str
    srcdst: str
    port: int
    mask: int = 0

    def marshal_text(self) -> str:
        if self.mask == 0:
            return f"{self.prefix}_{self.srcdst}={self.port}"
        return f"{self.prefix}_{self.srcdst}=0x{self.port:04x}/0x{self.mask:04x}"

    def __repr__(self) -> str:
        kind = "transport" if self.prefix == "tp" else "udp"
        direction = "source" if self.srcdst == SOURCE else "destination"
        if self.mask > 0:
            return f"{kind}_{direction}_masked_port({self.port:#x}, {self.mask:#x})"
        return f"{kind}_{direction}_port({self.port})"


@dataclass(frozen=True)
class TransportPortRanger:
    """A port range which can be expressed as a list of masked port matches."""

    prefix: str
    srcdst: str
    start_port: int
    end_port: int

    def masked_ports(self) -> List[Match]:
        """Return matches that together cover the whole range."""
        return [
            _PortMatch(self.prefix, self.srcdst, value, mask)
            for value, mask in bitwise_match(self.start_port, self.end_port)
        ]


@dataclass(frozen=True, repr=False)
class _MaskedHexMatch(Match):
    """A field matched against a zero-padded hexadecimal value and optional mask."""

    key: str
    value: int
    mask: int
    width: int
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        w = self.width
        if self.mask != 0:
            return f"{self.key}=0x{self.value:0{w}x}/0x{self.mask:0{w}x}"
        return f"{self.key}=0x{self.value:0{w}x}"

    def __repr__(self) -> str:
        w = self.width
        return f"{self.name}(0x{self.value:0{w}x}, 0x{self.mask:0{w}x})"


@dataclass(frozen=True, repr=False)
class _IPv6LabelMatch(Match):
    label: int
    mask: int

    def marshal_text(self) -> str:
        if self.label > _IPV6_LABEL_MAX or self.mask > _IPV6_LABEL_MAX:
            raise InvalidMatchError("IPv6 label must only use 20 bits")
        if self.mask != 0:
            return f"ipv6_label=0x{self.label:05x}/0x{self.mask:05x}"
        return f"ipv6_label=0x{self.label:05x}"

    def __repr__(self) -> str:
        return f"ipv6_label(0x{self.label:04x}, 0x{self.mask:04x})"


@dataclass(frozen=True, repr=False)
class _ArpOpMatch(Match):
    op: int

    def marshal_text(self) -> str:
        if not 1 <= self.op <= 4:
            raise InvalidMatchError("ARP opcode must be in range 1-4")
        return f"arp_op={self.op}"

    def __repr__(self) -> str:
        return f"arp_op({self.op})"


@dataclass(frozen=True, repr=False)
class _FlagsMatch(Match):
    key: str
    values: Tuple[str, ...]
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        return f"{self.key}={''.join(self.values)}"

    def __repr__(self) -> str:
        return f"{self.name}({_quoted(self.values)})"


@dataclass(frozen=True, repr=False)
class _Hex64Match(Match):
    key: str
    value: int
    mask: int
    name: str = field(compare=False)

    def marshal_text(self) -> str:
        if self.mask == 0:
            return f"{self.key}={self.value:#x}"
        return f"{self.key}={self.value:#x}/{self.mask:#x}"

    def __repr__(self) -> str:
        if self.mask > 0:
            return f"{self.name}_with_mask({self.value:#x}, {self.mask:#x})"
        return f"{self.name}({self.value:#x})"


@dataclass(frozen=True, repr=False)
class _IPFragMatch(Match):
    flag: str

    def marshal_text(self) -> str:
        return f"ip_frag={self.flag}"

    def __repr__(self) -> str:
        return f"ip_frag({self.flag})"


@dataclass(frozen=True, repr=False)
class _FieldMatch(Match):
    field_name: str
    src_or_value: str

    def marshal_text(self) -> str:
        return f"{self.field_name}={self.src_or_value}"

    def __repr__(self) -> str:
        return f"field_match({self.field_name},{self.src_or_value})"


def tunnel_gbp(gbp: int) -> Match:
    """Match the tunnel group based policy ID."""
    return _IntMatch("tun_gbp_id", gbp, "tunnel_gbp")


def tunnel_gbp_flags(gbp_flags: int) -> Match:
    """Match the tunnel group based policy flags."""
    return _IntMatch("tun_gbp_flags", gbp_flags, "tunnel_gbp_flags")


def tunnel_flags(flags: int) -> Match:
    """Match the tunnel flags."""
    return _IntMatch("tun_flags", flags, "tunnel_flags")


def tunnel_ttl(ttl: int) -> Match:
    """Match the tunnel time to live."""
    return _IntMatch("tun_ttl", ttl, "tunnel_ttl")


def tunnel_tos(tos: int) -> Match:
    """Match the tunnel type of service."""
    return _IntMatch("tun_tos", tos, "tunnel_tos")


def conjunction_id(id: int) -> Match:
    """Match flows which matched every dimension of a conjunction."""
    return _IntMatch("conj_id", _check_uint(id, 32), "conjunction_id")


def transport_source_port(port: int) -> Match:
    """Match a TCP source port."""
    return _PortMatch("tp", SOURCE, _check_uint(port, 16))


def transport_destination_port(port: int) -> Match:
    """Match a TCP destination port."""
    return _PortMatch("tp", DESTINATION, _check_uint(port, 16))


def transport_source_masked_port(port: int, mask: int) -> Match:
    """Match a TCP source port against a masked range."""
    return _PortMatch("tp", SOURCE, _check_uint(port, 16), _check_uint(mask, 16))


def transport_destination_masked_port(port: int, mask: int) -> Match:
    """Match a TCP destination port against a masked range."""
    return _PortMatch("tp", DESTINATION, _check_uint(port, 16), _check_uint(mask, 16))


def udp_source_port(port: int) -> Match:
    """Match a UDP source port."""
    return _PortMatch("udp", SOURCE, _check_uint(port, 16))


def udp_destination_port(port: int) -> Match:
    """Match a UDP destination port."""
    return _PortMatch("udp", DESTINATION, _check_uint(port, 16))


def udp_source_masked_port(port: int, mask: int) -> Match:
    """Match a UDP source port against a masked range."""
    return _PortMatch("udp", SOURCE, _check_uint(port, 16), _check_uint(mask, 16))


def udp_destination_masked_port(port: int, mask: int) -> Match:
    """Match a UDP destination port against a masked range."""
    return _PortMatch("udp", DESTINATION, _check_uint(port, 16), _check_uint(mask, 16))


def transport_source_port_range(start_port: int, end_port: int) -> TransportPortRanger:
    """A transport source port range."""
    return TransportPortRanger("tp", SOURCE, start_port, end_port)


def transport_destination_port_range(start_port: int, end_port: int) -> TransportPortRanger:
    """A transport destination port range."""
    return TransportPortRanger("tp", DESTINATION, start_port, end_port)


def udp_source_port_range(start_port: int, end_port: int) -> TransportPortRanger:
    """A UDP source port range."""
    return TransportPortRanger("udp", SOURCE, start_port, end_port)


def udp_destination_port_range(start_port: int, end_port: int) -> TransportPortRanger:
    """A UDP destination port range."""
    return TransportPortRanger("udp", DESTINATION, start_port, end_port)


def vlan_tci(tci: int, mask: int) -> Match:
    """Match VLAN tag control information, with a mask when it is non-zero."""
    return _MaskedHexMatch("vlan_tci", _check_uint(tci, 16), _check_uint(mask, 16), 4, "vlan_tci")


def vlan_tci1(tci: int, mask: int) -> Match:
    """Match outer VLAN tag control information, with an optional mask."""
    return _MaskedHexMatch("vlan_tci1", _check_uint(tci, 16), _check_uint(mask, 16), 4, "vlan_tci1")


def ipv6_label(label: int, mask: int) -> Match:
    """Match the IPv6 flow label, with an optional mask."""
    return _IPv6LabelMatch(_check_uint(label, 32), _check_uint(mask, 32))


def arp_op(op: int) -> Match:
    """Match an ARP opcode, which must be a known operation."""
    return _ArpOpMatch(_check_uint(op, 16))


def connection_tracking_mark(mark: int, mask: int) -> Match:
    """Match the connection tracking mark, with an optional mask."""
    return _MaskedHexMatch(
        "ct_mark", _check_uint(mark, 32), _check_uint(mask, 32), 8, "connection_tracking_mark"
    )


def connection_tracking_zone(zone: int) -> Match:
    """Match a connection tracking zone."""
    return _IntMatch("ct_zone", _check_uint(zone, 16), "connection_tracking_zone")


def connection_tracking_state(*args: str) -> Match:
    """Match connection tracking state flags built with set_state and unset_state."""
    return _FlagsMatch("ct_state", tuple(args), "connection_tracking_state")


def set_state(state: Union[CTState, str]) -> str:
    """Require the given connection tracking state flag."""
    return f"+{_text(state)}"


def unset_state(state: Union[CTState, str]) -> str:
    """Forbid the given connection tracking state flag."""
    return f"-{_text(state)}"


def metadata(value: int) -> Match:
    """Match metadata exactly."""
    return _Hex64Match("metadata", _check_uint(value, 64), 0, "metadata")


def metadata_with_mask(value: int, mask: int) -> Match:
    """Match metadata under a mask."""
    return _Hex64Match("metadata", _check_uint(value, 64), _check_uint(mask, 64), "metadata")


def tcp_flags(*args: str) -> Match:
    """Match TCP flags built with set_tcp_flag and unset_tcp_flag."""
    return _FlagsMatch("tcp_flags", tuple(args), "tcp_flags")


def set_tcp_flag(flag: Union[TCPFlag, str]) -> str:
    """Require the given TCP flag."""
    return f"+{_text(flag)}"


def unset_tcp_flag(flag: Union[TCPFlag, str]) -> str:
    """Forbid the given TCP flag."""
    return f"-{_text(flag)}"


def tunnel_id(id: int) -> Match:
    """Match a tunnel ID exactly."""
    return _Hex64Match("tun_id", _check_uint(id, 64), 0, "tunnel_id")


def tunnel_id_with_mask(id: int, mask: int) -> Match:
    """Match a tunnel ID under a mask."""
    return _Hex64Match("tun_id", _check_uint(id, 64), _check_uint(mask, 64), "tunnel_id")


def tunnel_src(addr: str) -> Match:
    """Match a tunnel source IPv4 address or CIDR block."""
    return _IPv4Match("tun_src", addr, "tunnel_src")


def tunnel_dst(addr: str) -> Match:
    """Match a tunnel destination IPv4 address or CIDR block."""
    return _IPv4Match("tun_dst", addr, "tunnel_dst")


def ip_frag(flag: Union[IPFragFlag, str]) -> Match:
    """Match the packet fragmentation state."""
    return _IPFragMatch(_text(flag))


def field_match(field: str, src_or_value: str) -> Match:
    """Match a field against a literal value or another packet field."""
    return _FieldMatch(field, src_or_value)