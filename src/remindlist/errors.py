"""Exceptions raised for invalid input to the reminder core."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError


class ReminderError(Exception):
    """Base class for programmer/input errors in the reminder core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to an error payload."""
        return {"error": self.message, "type": type(self).__name__}


class ValidationError(ReminderError):
    """Raised when reminder data fails validation (empty title, bad priority, ...)."""

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Build from a pydantic error, keeping the validator's own message."""
        messages = []
        for err in exc.errors():
            # ValueErrors raised in our validators carry the readable text in ctx
            ctx_error = (err.get("ctx") or {}).get("error")
            if ctx_error is not None:
                messages.append(str(ctx_error))
            else:
                loc = ".".join(str(part) for part in err.get("loc", ()))
                messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        return cls("; ".join(messages) or "Invalid reminder data")


class FormatError(ReminderError):
    """Raised when a backup payload does not have the expected shape."""
