"""Observability message model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MessageType(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class LogMessage:
    """A dashboard log line. Never used for control flow."""

    text: str
    type: MessageType = MessageType.INFO
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
