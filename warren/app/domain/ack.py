"""Acknowledgement intent recorded on a context and consumed by the driver."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AckKind(str, Enum):
    ACK = "ack"
    NACK = "nack"
    ACK_ALL = "ack_all"
    NACK_ALL = "nack_all"


@dataclass(frozen=True)
class AckIntent:
    """One ack decision: which primitive to call and the options to call it with."""

    kind: AckKind
    opts: dict[str, Any] = field(default_factory=dict)


class AckUnavailableError(RuntimeError):
    """Raised when ack, nack, ack_all or nack_all is touched after onerror."""

    def __init__(self) -> None:
        super().__init__(
            "Ack, nack, ack_all and nack_all are not available: "
            "the message was already handled by onerror"
        )
