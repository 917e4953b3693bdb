"""
Exception hierarchy for the nexus exposure engine.

Configuration problems are fatal at load time; upstream data problems are
surfaced to the caller as a failed report. Unknown state codes are not
errors and never reach this module.
"""

from __future__ import annotations

from typing import Optional


class NexusEngineError(Exception):
    """Base class for all nexus engine errors."""


class RegistryConfigurationError(NexusEngineError):
    """The state threshold registry is missing or malformed."""

    def __init__(
        self,
        message: str,
        state_code: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        self.state_code = state_code
        self.source = source

        parts = [message]
        if state_code:
            parts.append(f"State: {state_code}")
        if source:
            parts.append(f"Source: {source}")
        super().__init__(" | ".join(parts))


class OrderSourceError(NexusEngineError):
    """The order source could not return a user's order history."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.user_id = user_id
        self.original_error = original_error

        if user_id:
            message = f"{message} (user: {user_id})"
        if original_error:
            message = f"{message} (Original error: {original_error})"
        super().__init__(message)


class InvalidOrderError(NexusEngineError):
    """An order record could not be parsed."""

    def __init__(self, message: str, row_number: Optional[int] = None) -> None:
        self.row_number = row_number
        if row_number is not None:
            message = f"Row {row_number}: {message}"
        super().__init__(message)
