"""LogMessage sink plumbing.

The core reports what it is doing through an optional sink callback. Every
message is mirrored to the stdlib logger; the sink is fire-and-forget.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from stockfeed.models.log_message import LogMessage, MessageType

logger = logging.getLogger(__name__)

LogSink = Callable[[LogMessage], None]

_LEVELS = {
    MessageType.INFO: logging.INFO,
    MessageType.SUCCESS: logging.INFO,
    MessageType.WARNING: logging.WARNING,
    MessageType.ERROR: logging.ERROR,
}


def emit(
    sink: Optional[LogSink],
    text: str,
    kind: MessageType = MessageType.INFO,
) -> LogMessage:
    """Build a message, log it, and hand it to ``sink`` if one is registered."""
    message = LogMessage(text=text, type=kind)
    logger.log(_LEVELS[kind], text)
    if sink is not None:
        try:
            sink(message)
        except Exception:
            logger.exception("Log sink rejected message: %s", text)
    return message


class LogBuffer:
    """Bounded, de-duplicating message store usable as a sink.

    A message whose ``(text, type)`` is already buffered is dropped; once
    ``max_messages`` is exceeded the oldest entries fall off.
    """

    def __init__(self, max_messages: int = 15) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.max_messages = max_messages
        self._messages: deque[LogMessage] = deque(maxlen=max_messages)

    def __call__(self, message: LogMessage) -> None:
        self.add(message)

    def add(self, message: LogMessage | str) -> bool:
        """Append ``message``; returns False when it was a duplicate."""
        if isinstance(message, str):
            message = LogMessage(text=message)
        if any(m.text == message.text and m.type == message.type for m in self._messages):
            return False
        self._messages.append(message)
        return True

    @property
    def messages(self) -> list[LogMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages.clear()
