import pytest

from ovsflow.fields import (
    CTState,
    TCPFlag,
    arp_op,
    conjunction_id,
    connection_tracking_mark,
    connection_tracking_state,
    connection_tracking_zone,
    ipv6_label,
    metadata,
    metadata_with_mask,
    set_state,
    set_tcp_flag,
    tcp_flags,
    transport_destination_masked_port,
    transport_destination_port,
    transport_source_port,
    tunnel_id,
    tunnel_id_with_mask,
    udp_destination_port,
    udp_source_masked_port,
    unset_state,
    unset_tcp_flag,
    vlan_tci,
    vlan_tci1,
)
from ovsflow.match import (
    VLAN_NONE,
    data_link_source,
    data_link_type,
    data_link_vlan,
    data_link_vlan_pcp,
    icmp_type,
    in_port_match,
    network_protocol,
    network_source,
)
from ovsflow.matchparser import parse_match


def test_unknown_key_returns_none():
    assert parse_match("no_such_field", "1") is None


@pytest.mark.parametrize(
    "key, value",
    [
        ("icmp_type", "3"),
        ("icmp_code", "1"),
        ("icmpv6_type", "135"),
        ("icmpv6_code", "3"),
        ("nw_proto", "58"),
        ("ct_zone", "1"),
        ("conj_id", "11111"),
        ("in_port", "74"),
        ("nw_ttl", "64"),
        ("nw_tos", "8"),
        ("nw_ecn", "2"),
        ("tun_ttl", "10"),
        ("tun_tos", "4"),
        ("tun_gbp_id", "7"),
        ("tun_gbp_flags", "1"),
        ("tun_flags", "1"),
        ("tp_src", "80"),
        ("tp_dst", "22"),
        ("udp_src", "53"),
        ("udp_dst", "8080"),
        ("tp_dst", "0xea60/0xffe0"),
        ("udp_src", "0x0010/0xfff0"),
        ("arp_sha", "de:ad:be:ef:de:ad"),
        ("arp_tha", "de:ad:be:ef:de:ad"),
        ("nd_sll", "de:ad:be:ef:de:ad"),
        ("nd_tll", "de:ad:be:ef:de:ad"),
        ("arp_spa", "192.168.1.1"),
        ("arp_tpa", "192.168.1.0/24"),
        ("dl_src", "f1:f2:f3:f4:f5:f6"),
        ("dl_dst", "de:ad:be:ef:de:ad/ff:ff:ff:ff:ff:ff"),
        ("dl_type", "0x0806"),
        ("dl_vlan", "10"),
        ("dl_vlan", "0xffff"),
        ("dl_vlan_pcp", "7"),
        ("nd_target", "2001:db8::1"),
        ("ipv6_src", "2001:db8::1/128"),
        ("ipv6_dst", "fe80::abcd:1"),
        ("nw_src", "169.254.169.254"),
        ("nw_dst", "169.254.0.0/16"),
        ("vlan_tci", "0x1000/0x1000"),
        ("vlan_tci1", "0x1000/0x1000"),
        ("ipv6_label", "0x01000/0xfffff"),
        ("ct_mark", "0x00001000/0x00001000"),
        ("metadata", "0xa"),
        ("tun_id", "0xa0/0xf0"),
        ("ct_state", "+new-trk"),
        ("tcp_flags", "+syn-ack"),
        ("arp_op", "2"),
    ],
)
def test_round_trip(key, value):
    assert parse_match(key, value).marshal_text() == f"{key}={value}"


def test_int_matches_equal_constructors():
    assert parse_match("icmp_type", "8") == icmp_type(8)
    assert parse_match("nw_proto", "6") == network_protocol(6)
    assert parse_match("in_port", "31") == in_port_match(31)
    assert parse_match("ct_zone", "1") == connection_tracking_zone(1)
    assert parse_match("conj_id", "123") == conjunction_id(123)


def test_uint8_field_wraps_negative():
    assert parse_match("icmp_type", "-1") == icmp_type(0xFF)


@pytest.mark.parametrize(
    "key, value",
    [
        ("icmp_type", "256"),
        ("ct_zone", "65536"),
        ("in_port", "2147483648"),
        ("icmp_code", "abc"),
        ("conj_id", ""),
    ],
)
def test_int_match_errors(key, value):
    with pytest.raises(ValueError):
        parse_match(key, value)


def test_ports():
    assert parse_match("tp_src", "80") == transport_source_port(80)
    assert parse_match("tp_dst", "53") == transport_destination_port(53)
    assert parse_match("udp_dst", "53") == udp_destination_port(53)
    assert parse_match("tp_dst", "0xea60/0xffe0") == transport_destination_masked_port(
        0xEA60, 0xFFE0
    )
    assert parse_match("udp_src", "0x10/0xfff0") == udp_source_masked_port(0x10, 0xFFF0)


@pytest.mark.parametrize(
    "key, value",
    [
        ("tp_src", "65536"),
        ("tp_dst", "0x10000/0xffff"),
        ("tp_dst", "0x10/zz"),
        ("udp_dst", "1/2/3"),
    ],
)
def test_port_errors(key, value):
    with pytest.raises(ValueError):
        parse_match(key, value)


def test_mac_error():
    with pytest.raises(ValueError):
        parse_match("arp_sha", "foo")


def test_ct_state_forms():
    expected = connection_tracking_state(
        set_state(CTState.NEW), set_state(CTState.RELATED), set_state(CTState.TRACKED)
    )
    assert parse_match("ct_state", "+new+rel+trk") == expected
    assert parse_match("ct_state", "new|rel|trk") == expected
    assert parse_match("ct_state", "trk") == connection_tracking_state(set_state(CTState.TRACKED))
    assert parse_match("ct_state", "-trk") == connection_tracking_state(
        unset_state(CTState.TRACKED)
    )


def test_tcp_flags():
    assert parse_match("tcp_flags", "+syn-psh+ack") == tcp_flags(
        set_tcp_flag(TCPFlag.SYN), unset_tcp_flag(TCPFlag.PSH), set_tcp_flag(TCPFlag.ACK)
    )
    assert parse_match("tcp_flags", "18") == tcp_flags("18")


def test_tcp_flags_bad_length():
    with pytest.raises(ValueError, match="divisible by 4"):
        parse_match("tcp_flags", "+syn-")


def test_data_link_fields():
    assert parse_match("dl_type", "0x0806") == data_link_type(0x0806)
    assert parse_match("dl_vlan", "0xffff") == data_link_vlan(VLAN_NONE)
    assert parse_match("dl_vlan", "10") == data_link_vlan(10)
    assert parse_match("dl_vlan_pcp", "0x7") == data_link_vlan_pcp(7)
    assert parse_match("dl_src", "f1:f2:f3:f4:f5:f6") == data_link_source("f1:f2:f3:f4:f5:f6")
    with pytest.raises(ValueError):
        parse_match("dl_vlan", "ten")


def test_tunnel_source_is_network_source():
    assert parse_match("tun_src", "10.0.0.1") == network_source("10.0.0.1")


def test_masked_hex_fields():
    assert parse_match("vlan_tci", "10") == vlan_tci(10, 0)
    assert parse_match("vlan_tci1", "0x1000/0x1000") == vlan_tci1(0x1000, 0x1000)
    assert parse_match("ipv6_label", "0x1000/0xfffff") == ipv6_label(0x1000, 0xFFFFF)
    assert parse_match("ct_mark", "10") == connection_tracking_mark(10, 0)
    assert parse_match("metadata", "0xa") == metadata(0xA)
    assert parse_match("metadata", "0xa/0xf") == metadata_with_mask(0xA, 0xF)
    assert parse_match("tun_id", "0xa") == tunnel_id(0xA)
    assert parse_match("tun_id", "0xa0/0x5a") == tunnel_id_with_mask(0xA0, 0x5A)


def test_negative_metadata_wraps():
    assert parse_match("metadata", "-1") == metadata(0xFFFFFFFFFFFFFFFF)


@pytest.mark.parametrize(
    "key, value",
    [
        ("vlan_tci", "10/10/10"),
        ("vlan_tci1", "10/10/10"),
        ("ipv6_label", "10/10/10"),
        ("ct_mark", "10/10/10"),
        ("metadata", "10/10/10"),
        ("tun_id", "10/10/10"),
        ("tun_id", "0xzz"),
    ],
)
def test_masked_hex_errors(key, value):
    with pytest.raises(ValueError):
        parse_match(key, value)


def test_arp_op():
    assert parse_match("arp_op", "1") == arp_op(1)
    assert parse_match("arp_op", "0x2") == arp_op(2)
    with pytest.raises(ValueError):
        parse_match("arp_op", "-1")
    with pytest.raises(ValueError):
        parse_match("arp_op", "65536")