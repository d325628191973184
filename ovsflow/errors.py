"""Configuration enumerations and the error raised by Open vSwitch control programs."""

from __future__ import annotations

from enum import Enum

_PORT_NOT_EXIST_PREFIX = b"ovs-vsctl: no port named "
_EXIT_STATUS_ONE = "exit status 1"


class FailMode(str, Enum):
    """Failure mode used by Open vSwitch when it cannot contact a controller."""

    STANDALONE = "standalone"
    SECURE = "secure"


class InterfaceType(str, Enum):
    """Network interface type recognized by Open vSwitch."""

    GRE = "gre"
    INTERNAL = "internal"
    PATCH = "patch"
    STT = "stt"
    VXLAN = "vxlan"


class PortAction(str, Enum):
    """Action which changes the characteristics of a port."""

    UP = "up"
    DOWN = "down"
    STP = "stp"
    NO_STP = "no-stp"
    RECEIVE = "receive"
    NO_RECEIVE = "no-receive"
    RECEIVE_STP = "receive-stp"
    NO_RECEIVE_STP = "no-receive-stp"
    FORWARD = "forward"
    NO_FORWARD = "no-forward"
    FLOOD = "flood"
    NO_FLOOD = "no-flood"
    PACKET_IN = "packet-in"
    NO_PACKET_IN = "no-packet-in"


class CommandError(Exception):
    """A control program failed; holds its combined output and the cause."""

    def __init__(self, out: bytes, err: BaseException) -> None:
        super().__init__(out, err)
        self.out = bytes(out)
        self.err = err

    def __str__(self) -> str:
        return f"{self.err}: {self.out.decode(errors='replace')}"


def is_port_not_exist(err: BaseException) -> bool:
    """Report whether err was caused by asking about a port that does not exist."""
    if not isinstance(err, CommandError):
        return False
    return err.out.startswith(_PORT_NOT_EXIST_PREFIX) and str(err.err) == _EXIT_STATUS_ONE