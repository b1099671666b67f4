"""HTTP surface for the party wizard."""

from .app import create_app, session_payload, stream_turn
from .dependencies import (
    OrchestratorDep,
    SessionServiceDep,
    UserIdDep,
    WizardRuntime,
    get_runtime,
    init_runtime,
    reset_runtime,
)
from .exceptions import APIError, MissingUserError, register_exception_handlers

__all__ = [
    "APIError",
    "MissingUserError",
    "OrchestratorDep",
    "SessionServiceDep",
    "UserIdDep",
    "WizardRuntime",
    "create_app",
    "get_runtime",
    "init_runtime",
    "register_exception_handlers",
    "reset_runtime",
    "session_payload",
    "stream_turn",
]
