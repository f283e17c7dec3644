"""Error taxonomy shared by the service layer, the AI client and the stores.

Every failure a user action can hit is one of these. The bot catches
``TrackerError`` at the handler and replies with ``user_message``; nothing
is retried.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all expected, user-facing failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class AuthRequired(TrackerError):
    """No authenticated owner for the requested operation."""

    user_message = "You need to be signed in to do that."


class NotFound(TrackerError):
    """A referenced commitment or record does not exist for this owner."""

    user_message = "Couldn't find that item. Use /list to see your commitments."


class TransportFailure(TrackerError):
    """The remote AI call failed (non-2xx response or network error)."""

    user_message = "The AI service is unavailable right now. Please try again later."


class MalformedResponse(TrackerError):
    """The AI response could not be parsed or was missing required fields."""

    user_message = "The AI returned an answer I couldn't understand. Please try again."


class ValidationFailure(TrackerError):
    """User input failed local format rules."""

    user_message = "That input doesn't look right."
