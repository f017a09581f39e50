"""
Bridge Errors - Structured failures for browser commands
========================================================
Every operation raises BridgeError with an ErrorKind. The command layer turns
recoverable kinds into a one-line answer for the caller; only transport
failures end the process with a non-zero exit.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of bridge failures."""
    TARGET_NOT_FOUND = "target_not_found"      # no page tab / tab index out of range
    SELECTOR_NOT_FOUND = "selector_not_found"  # scoping or file-input selector matched nothing
    INDEX_NOT_FOUND = "index_not_found"        # no stamped node for that index
    WRONG_ELEMENT_KIND = "wrong_element_kind"  # type issued against a non-text element
    PAGE_ERROR = "page_error"                  # evaluation threw / protocol error
    FILE_NOT_FOUND = "file_not_found"          # upload path missing locally
    TRANSPORT = "transport"                    # endpoint unreachable / websocket failed


class BridgeError(Exception):
    """
    Structured error for a failed browser command.
    Carries the failure classification and the underlying cause, if any.
    """
    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.__cause__ = cause

    @property
    def fatal(self) -> bool:
        return self.kind == ErrorKind.TRANSPORT

    def __repr__(self):
        return f"BridgeError({self.kind.value}, {str(self)!r})"
