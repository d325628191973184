"""Flows used to select existing OpenFlow flows, e.g. for deletion or dumping."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

from .match import Match

#: Special table value which selects flows in any table.
ANY_TABLE = -1

#: Special in_port value referring to the local port of a bridge.
PORT_LOCAL = -1

_EMPTY_MATCH_FLOW = "match flow is empty"


class MatchFlowError(Exception):
    """An error encountered while rendering or reading a MatchFlow."""

    def __init__(self, err: BaseException, text: str = "") -> None:
        super().__init__(err, text)
        self.err = err
        self.text = text

    def __str__(self) -> str:
        if not self.text:
            return str(self.err)
        return f'flow error due to string "{self.text}": {self.err}'


def _padded_hex(value: int) -> str:
    return f"0x{value:016x}"


@dataclass
class MatchFlow:
    """An OpenFlow flow description which selects flows rather than installing one.

    When cookie_mask is zero and cookie is set, the cookie is matched exactly.
    """

    protocol: Union[str, Enum] = ""
    in_port: int = 0
    matches: List[Match] = field(default_factory=list)
    table: int = 0
    cookie: int = 0
    cookie_mask: int = 0

    def marshal_text(self) -> str:
        """Return the textual form of the flow; raise MatchFlowError when it is empty."""
        matches = [m.marshal_text() for m in self.matches]

        text = ""
        protocol = self.protocol.value if isinstance(self.protocol, Enum) else self.protocol
        if protocol:
            text += f"{protocol},"

        if self.in_port != 0:
            port = "LOCAL" if self.in_port == PORT_LOCAL else str(self.in_port)
            text += f"in_port={port},"

        if matches:
            text += ",".join(matches) + ","

        if self.cookie > 0 or self.cookie_mask > 0:
            mask = "-1" if self.cookie_mask == 0 else _padded_hex(self.cookie_mask)
            text += f"cookie={_padded_hex(self.cookie)}/{mask},"

        if self.table != ANY_TABLE:
            text += f"table={self.table}"

        text = text.strip(",")
        if not text:
            raise MatchFlowError(ValueError(_EMPTY_MATCH_FLOW))
        return text