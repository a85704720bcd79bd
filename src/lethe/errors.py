"""Exception hierarchy for Lethe."""

from __future__ import annotations


class LetheError(Exception):
    """Base class for all Lethe errors."""


class LogNotFoundError(LetheError):
    """Raised when a named conversation log does not exist in the record store."""

    def __init__(self, log_id: str) -> None:
        super().__init__(f"Log not found: {log_id!r}")
        self.log_id = log_id


class MalformedRecordError(LetheError):
    """Raised when one line of a log fails to parse as a record."""

    def __init__(self, line_number: int, detail: str) -> None:
        super().__init__(f"Malformed record on line {line_number}: {detail}")
        self.line_number = line_number
        self.detail = detail


class ConfigMissingError(LetheError):
    """Raised when required configuration (usually provider credentials) is missing."""

    def __init__(self, config_name: str) -> None:
        super().__init__(f"Required configuration missing: {config_name}")
        self.config_name = config_name
