"""Parsing of textual match fields back into Match values."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional

from .fields import (
    arp_op,
    conjunction_id,
    connection_tracking_mark,
    connection_tracking_state,
    connection_tracking_zone,
    ipv6_label,
    metadata,
    metadata_with_mask,
    tcp_flags,
    transport_destination_masked_port,
    transport_source_masked_port,
    tunnel_flags,
    tunnel_gbp,
    tunnel_gbp_flags,
    tunnel_id,
    tunnel_id_with_mask,
    tunnel_tos,
    tunnel_ttl,
    udp_destination_masked_port,
    udp_source_masked_port,
    vlan_tci,
    vlan_tci1,
)
from .match import (
    InvalidMatchError,
    Match,
    arp_source_hardware_address,
    arp_source_protocol_address,
    arp_target_hardware_address,
    arp_target_protocol_address,
    data_link_destination,
    data_link_source,
    data_link_type,
    data_link_vlan,
    data_link_vlan_pcp,
    icmp6_code,
    icmp6_type,
    icmp_code,
    icmp_type,
    in_port_match,
    ipv6_destination,
    ipv6_source,
    neighbor_discovery_source_link_layer,
    neighbor_discovery_target,
    neighbor_discovery_target_link_layer,
    network_destination,
    network_ecn,
    network_protocol,
    network_source,
    network_tos,
    network_ttl,
    parse_mac,
)

_HEX_PREFIX = "0x"

_SIGNED = re.compile(r"[+-]?[0-9]+")
_DIGITS = {10: re.compile(r"[0-9]+"), 16: re.compile(r"[0-9a-fA-F]+")}

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_MAX_UINT8 = 0xFF
_MAX_UINT16 = 0xFFFF
_MAX_UINT32 = 0xFFFFFFFF
_MAX_INT32 = 0x7FFFFFFF


def _atoi(text: str) -> int:
    if not _SIGNED.fullmatch(text):
        raise InvalidMatchError(f"invalid integer {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise InvalidMatchError(f"integer {text!r} out of range")
    return value


def _parse_uint(text: str, base: int, bits: int) -> int:
    if not _DIGITS[base].fullmatch(text):
        raise InvalidMatchError(f"invalid unsigned integer {text!r}")
    value = int(text, base)
    if value >= 1 << bits:
        raise InvalidMatchError(f"unsigned integer {text!r} out of range")
    return value


def _trim_hex(text: str) -> str:
    return text[len(_HEX_PREFIX):] if text.startswith(_HEX_PREFIX) else text


def _hex16(text: str) -> int:
    return _parse_uint(_trim_hex(text), 16, 32) & _MAX_UINT16


def _hex32(text: str) -> int:
    return _parse_uint(_trim_hex(text), 16, 32)


def _hex64(text: str) -> int:
    return _parse_uint(_trim_hex(text), 16, 64)


_HEX_BY_BITS = {16: _hex16, 32: _hex32, 64: _hex64}


def _clamp_int(text: str, maximum: int) -> int:
    value = _atoi(text)
    if value > maximum:
        raise InvalidMatchError(f"integer {value} too large; {value} > {maximum}")
    return value


# key -> (constructor, bit width used to truncate the value or None, maximum)
_INT_MATCHES: Dict[str, tuple] = {
    "icmp_type": (icmp_type, 8, _MAX_UINT8),
    "icmp_code": (icmp_code, 8, _MAX_UINT8),
    "icmpv6_type": (icmp6_type, 8, _MAX_UINT8),
    "icmpv6_code": (icmp6_code, 8, _MAX_UINT8),
    "nw_proto": (network_protocol, 8, _MAX_UINT8),
    "ct_zone": (connection_tracking_zone, 16, _MAX_UINT16),
    "conj_id": (conjunction_id, 32, _MAX_UINT32),
    "in_port": (in_port_match, None, _MAX_INT32),
    "nw_ecn": (network_ecn, None, _MAX_INT32),
    "nw_ttl": (network_ttl, None, _MAX_INT32),
    "tun_ttl": (tunnel_ttl, None, _MAX_INT32),
    "tun_tos": (tunnel_tos, None, _MAX_INT32),
    "nw_tos": (network_tos, None, _MAX_INT32),
    "tun_gbp_id": (tunnel_gbp, None, _MAX_INT32),
    "tun_gbp_flags": (tunnel_gbp_flags, None, _MAX_INT32),
    "tun_flags": (tunnel_flags, None, _MAX_INT32),
}


def _parse_int_match(key: str, value: str) -> Match:
    constructor, bits, maximum = _INT_MATCHES[key]
    number = _clamp_int(value, maximum)
    if bits is not None:
        number &= (1 << bits) - 1
    return constructor(number)


_PORT_MATCHES = {
    "tp_src": transport_source_masked_port,
    "tp_dst": transport_destination_masked_port,
    "udp_src": udp_source_masked_port,
    "udp_dst": udp_destination_masked_port,
}


def _parse_port(key: str, value: str) -> Match:
    parts = value.split("/")
    if len(parts) == 1:
        port, mask = _clamp_int(value, _MAX_UINT16), 0
    elif len(parts) == 2:
        numbers = []
        for part in parts:
            number = _hex64(part)
            if number > _MAX_UINT16:
                raise InvalidMatchError(f"integer {number} too large; {number} > {_MAX_UINT16}")
            numbers.append(number)
        port, mask = numbers
    else:
        raise InvalidMatchError(f"invalid value, no action matched for {key}={value}")
    return _PORT_MATCHES[key](port & _MAX_UINT16, mask & _MAX_UINT16)


_MAC_MATCHES = {
    "arp_sha": arp_source_hardware_address,
    "arp_tha": arp_target_hardware_address,
    "nd_sll": neighbor_discovery_source_link_layer,
    "nd_tll": neighbor_discovery_target_link_layer,
}


def _parse_mac_match(key: str, value: str) -> Match:
    return _MAC_MATCHES[key](parse_mac(value))


def _parse_ct_state(value: str) -> Match:
    if "|" in value:
        value = "+" + value.replace("|", "+")

    if "+" in value or "-" in value:
        value = value.replace("+", " +").replace("-", " -").strip(" ")
    else:
        value = "+" + value

    return connection_tracking_state(*value.split())


def _parse_tcp_flags(value: str) -> Match:
    try:
        _atoi(value)
    except InvalidMatchError:
        pass
    else:
        return tcp_flags(value)

    if len(value.encode()) % 4 != 0:
        raise InvalidMatchError("tcp_flags length must be divisible by 4")

    flags: List[str] = []
    chunk = ""
    offset = 0
    for char in value:
        if offset != 0 and offset % 4 == 0:
            flags.append(chunk)
            chunk = ""
        chunk += char
        offset += len(char.encode())
    flags.append(chunk)
    return tcp_flags(*flags)


def _parse_small_int(value: str) -> int:
    if value.startswith(_HEX_PREFIX):
        return _hex16(value)
    return _atoi(value)


def _parse_masked(value: str, bits: int, name: str) -> List[int]:
    parse_hex = _HEX_BY_BITS[bits]
    wrap = (1 << bits) - 1
    numbers = [
        parse_hex(part) if part.startswith(_HEX_PREFIX) else _atoi(part) & wrap
        for part in value.split("/")
    ]
    if len(numbers) not in (1, 2):
        raise InvalidMatchError(f'invalid {name} match: "{value}"')
    return numbers


def _parse_vlan_tci(value: str) -> Match:
    numbers = _parse_masked(value, 16, "vlan_tci")
    return vlan_tci(numbers[0], numbers[1] if len(numbers) == 2 else 0)


def _parse_vlan_tci1(value: str) -> Match:
    numbers = _parse_masked(value, 16, "vlan_tci1")
    return vlan_tci1(numbers[0], numbers[1] if len(numbers) == 2 else 0)


def _parse_ipv6_label(value: str) -> Match:
    numbers = _parse_masked(value, 32, "ipv6_label")
    return ipv6_label(numbers[0], numbers[1] if len(numbers) == 2 else 0)


def _parse_ct_mark(value: str) -> Match:
    numbers = _parse_masked(value, 32, "ct_mark")
    return connection_tracking_mark(numbers[0], numbers[1] if len(numbers) == 2 else 0)


def _parse_metadata(value: str) -> Match:
    numbers = _parse_masked(value, 64, "metadata")
    if len(numbers) == 1:
        return metadata(numbers[0])
    return metadata_with_mask(*numbers)


def _parse_tun_id(value: str) -> Match:
    numbers = _parse_masked(value, 64, "tun_id")
    if len(numbers) == 1:
        return tunnel_id(numbers[0])
    return tunnel_id_with_mask(*numbers)


def _parse_arp_op(value: str) -> Match:
    if value.startswith(_HEX_PREFIX):
        return arp_op(_hex16(value))
    return arp_op(_parse_uint(value, 10, 16))


_Handler = Callable[[str, str], Match]

_HANDLERS: Dict[str, _Handler] = {
    **{key: _parse_mac_match for key in _MAC_MATCHES},
    **{key: _parse_int_match for key in _INT_MATCHES},
    **{key: _parse_port for key in _PORT_MATCHES},
    "arp_op": lambda _key, value: _parse_arp_op(value),
    "arp_spa": lambda _key, value: arp_source_protocol_address(value),
    "arp_tpa": lambda _key, value: arp_target_protocol_address(value),
    "ct_state": lambda _key, value: _parse_ct_state(value),
    "tcp_flags": lambda _key, value: _parse_tcp_flags(value),
    "dl_src": lambda _key, value: data_link_source(value),
    "dl_dst": lambda _key, value: data_link_destination(value),
    "dl_type": lambda _key, value: data_link_type(_hex16(value)),
    "dl_vlan_pcp": lambda _key, value: data_link_vlan_pcp(_parse_small_int(value)),
    "dl_vlan": lambda _key, value: data_link_vlan(_parse_small_int(value)),
    "nd_target": lambda _key, value: neighbor_discovery_target(value),
    "ipv6_src": lambda _key, value: ipv6_source(value),
    "ipv6_dst": lambda _key, value: ipv6_destination(value),
    "tun_ipv6_src": lambda _key, value: ipv6_source(value),
    "tun_ipv6_dst": lambda _key, value: ipv6_destination(value),
    "metadata": lambda _key, value: _parse_metadata(value),
    "ipv6_label": lambda _key, value: _parse_ipv6_label(value),
    "nw_src": lambda _key, value: network_source(value),
    "nw_dst": lambda _key, value: network_destination(value),
    "tun_src": lambda _key, value: network_source(value),
    "tun_dst": lambda _key, value: network_destination(value),
    "vlan_tci1": lambda _key, value: _parse_vlan_tci1(value),
    "vlan_tci": lambda _key, value: _parse_vlan_tci(value),
    "ct_mark": lambda _key, value: _parse_ct_mark(value),
    "tun_id": lambda _key, value: _parse_tun_id(value),
}


def parse_match(key: str, value: str) -> Optional[Match]:
    """Build a Match from a field name and its textual value.

    Returns None for field names which are not recognized.
    """
    handler = _HANDLERS.get(key)
    if handler is None:
        return None
    return handler(key, value)