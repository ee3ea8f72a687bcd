from typing import Any


class ParseError(ValueError):
    """
    Raised when a trade timestamp cannot be turned into a datetime.

    Subclasses ValueError so callers that already guard date parsing with
    `except ValueError` keep working.
    """

    def __init__(self, value: Any, reason: str = "unrecognized timestamp"):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class BrokerImportError(RuntimeError):
    """The broker import function failed or returned an unusable payload."""
