"""Exception hierarchy for the party wizard.

All errors raised by the wizard derive from :class:`PartyWizardError`, which
carries an optional ``context`` dictionary with diagnostic details.

Tool input problems are *not* raised: tools report them as failed
``ToolResult`` values so the model can correct itself within the same turn.
Exceptions are reserved for protocol violations, missing resources, and
failures of external dependencies.

Example:
    ```python
    from party_wizard.exceptions import NotFoundError, PartyWizardError

    try:
        session = await sessions.get_session(session_id, user_id)
    except NotFoundError as e:
        logger.warning("Missing session: %s (%s)", e, e.context)
    except PartyWizardError:
        raise
    ```
"""

from __future__ import annotations

from typing import Any


class PartyWizardError(Exception):
    """Base exception for all party wizard errors.

    Attributes:
        context: Dictionary containing contextual information about the error

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (ids, field names, etc.)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ValidationError(PartyWizardError):
    """Raised when input to a public operation is malformed."""

    pass


class NotFoundError(PartyWizardError):
    """Raised when a session or recipe cannot be found for the caller."""

    pass


class ProtocolError(PartyWizardError):
    """Raised when a chat turn violates the wizard protocol.

    Protocol errors are detected before any state is touched. Typical causes:

    - the incoming message role is not ``user``
    - a confirmation decision references a stale or unknown request id
    - a confirmation decision arrives while nothing is pending
    - the session is no longer active

    Example:
        ```python
        raise ProtocolError(
            "Confirmation request is stale",
            context={"request_id": decision.request_id},
        )
        ```
    """

    pass


class ConfigurationError(PartyWizardError):
    """Raised when settings are invalid or cannot be loaded."""

    pass


class ExtractionError(PartyWizardError):
    """Raised when recipe extraction, page fetching, or timeline generation fails.

    These errors never escape a turn: the branch selector falls through to the
    general model loop, and tools convert them into failed tool results.
    """

    pass


class ModelError(PartyWizardError):
    """Raised when a language model call fails.

    There is no fallback path for a failed model call, so this propagates to
    the caller. State persisted by earlier tool calls in the turn is kept.
    """

    pass


class StorageError(PartyWizardError):
    """Raised when the session store fails to read or write."""

    pass
