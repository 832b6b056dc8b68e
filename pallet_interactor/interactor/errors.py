"""Exceptions raised by the interaction core."""

from __future__ import annotations

from typing import Optional


class InteractorError(Exception):
    """Base exception for interaction core errors."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidTransitionError(InteractorError):
    """Raised when a selection is made before its upstream selection."""


class InvalidParamIndexError(InteractorError, IndexError):
    """Raised when a parameter write falls outside the derived parameter list."""


class UnknownSessionError(InteractorError, KeyError):
    """Raised when a session id is not held by the session store."""

    def __str__(self) -> str:
        # KeyError would otherwise quote the message.
        return str(self.args[0]) if self.args else ""
