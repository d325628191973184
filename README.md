# ovsflow

Build, validate and parse the packet-matching part of Open vSwitch
OpenFlow flows, in the textual syntax that `ovs-ofctl` understands.

## Install

    pip install .

To run the test suite:

    pip install ".[test]"
    pytest

## Modules

- `ovsflow.match`: the `Match` base class, `InvalidMatchError` (a
  `ValueError`), `parse_mac`, and matches on data-link, IPv4, IPv6,
  ICMP, ICMPv6, neighbor discovery and ARP fields.
- `ovsflow.fields`: tunnel, transport and UDP port, VLAN TCI, IPv6
  label, connection tracking, metadata, TCP flag, IP fragment and free
  field matches; the `CTState`, `TCPFlag` and `IPFragFlag` enums; port
  ranges through `TransportPortRanger` and `bitwise_match`.
- `ovsflow.matchflow`: `MatchFlow`, `MatchFlowError`, `ANY_TABLE` and
  `PORT_LOCAL`.
- `ovsflow.matchparser`: `parse_match`.
- `ovsflow.errors`: the `FailMode`, `InterfaceType` and `PortAction`
  enums, `CommandError` and `is_port_not_exist`.

## Building matches

Every match is created by a small factory function and turned into its
`ovs-ofctl` text with `marshal_text()`. Integer arguments that do not fit
the field's width (for example a port above 65535) raise `ValueError`
when the match is built; addresses, VLAN IDs and other checked values
raise `InvalidMatchError` when the match is marshaled.

```python
from ovsflow.match import data_link_source, network_destination
from ovsflow.fields import (
    CTState, TCPFlag, connection_tracking_state, set_state, unset_state,
    tcp_flags, set_tcp_flag,
)

data_link_source("02:00:00:00:00:01").marshal_text()
# 'dl_src=02:00:00:00:00:01'

network_destination("192.0.2.0/24").marshal_text()
# 'nw_dst=192.0.2.0/24'

connection_tracking_state(set_state(CTState.NEW), unset_state(CTState.TRACKED)).marshal_text()
# 'ct_state=+new-trk'

tcp_flags(set_tcp_flag(TCPFlag.SYN)).marshal_text()
# 'tcp_flags=+syn'
```

`repr()` of a match gives the call that builds it, for example
`data_link_source('02:00:00:00:00:01')`. Matches compare equal when they
match the same field with the same values.

## Port ranges

A range of transport or UDP ports is split into the fewest value/mask
pairs that cover it:

```python
from ovsflow.fields import transport_destination_port_range

[m.marshal_text() for m in transport_destination_port_range(16, 32).masked_ports()]
# ['tp_dst=0x0010/0xfff0', 'tp_dst=0x0020/0xffff']
```

A range that starts at 0 or whose start lies after its end raises
`InvalidMatchError`.

## Flows for matching and deletion

A `MatchFlow` joins a protocol, an input port, matches, a cookie and a
table into one filter, such as for `ovs-ofctl del-flows`:

```python
from ovsflow.matchflow import MatchFlow
from ovsflow.match import icmp_type

MatchFlow(protocol="icmp", matches=[icmp_type(3)], table=0).marshal_text()
# 'icmp,icmp_type=3,table=0'
```

An `in_port` of `PORT_LOCAL` is written as `in_port=LOCAL`. A cookie
without a mask is written as `cookie=0x…/-1`. The table defaults to 0;
use `ANY_TABLE` to leave it out. A flow with nothing to write raises
`MatchFlowError`.

## Parsing

`parse_match(key, value)` turns one `key=value` pair from `ovs-ofctl`
output back into a match object, or returns `None` for a key it does not
know:

```python
from ovsflow.matchparser import parse_match

parse_match("tp_dst", "0xea60/0xffe0").marshal_text()
# 'tp_dst=0xea60/0xffe0'
```

Malformed or out-of-range values raise `InvalidMatchError` or
`ValueError`.

## Command errors

`CommandError` holds the output and cause of a failed Open vSwitch
control command, and `is_port_not_exist(err)` tells whether such an
error means the port does not exist.

## What this package does not do

It only builds and reads text. It does not run `ovs-ofctl` or
`ovs-vsctl`, does not talk to a switch, and has no command-line tool. It
has no model of a full flow with actions, priorities or timeouts, and
does not parse flow, port or table dumps.