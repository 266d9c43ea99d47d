"""Stock feed models."""

from stockfeed.models.bar import Bar
from stockfeed.models.log_message import LogMessage, MessageType

__all__ = [
    "Bar",
    "LogMessage",
    "MessageType",
]
