"""Party Wizard - conversational dinner party planning with step confirmation."""

from .branching import WorkflowBranchSelector
from .config import WizardSettings
from .events import EventSink, ListEventSink, QueueEventSink, StreamWriter, WizardEvent
from .exceptions import (
    ConfigurationError,
    ExtractionError,
    ModelError,
    NotFoundError,
    PartyWizardError,
    ProtocolError,
    StorageError,
    ValidationError,
)
from .hooks import StepHooks
from .middleware import LoggingMiddleware, TurnMiddleware
from .model_loop import ModelLoop, ModelLoopResult
from .models import (
    ExistingRecipeRef,
    Guest,
    MenuPlan,
    NewRecipe,
    PartyInfo,
    SessionStatus,
    TimelineTask,
    WizardMessage,
    WizardSession,
)
from .orchestrator import ChatTurn, PreparedTurn, TurnResult, WizardOrchestrator
from .protocol import Approved, ConfirmationDecision, ConfirmationRequest, Pending, Revised
from .sessions import InMemoryPartyFinalizer, PartyFinalizer, SessionService
from .steps import WizardStep

__version__ = "0.1.0"

__all__ = [
    # Engine
    "WizardOrchestrator",
    "ChatTurn",
    "PreparedTurn",
    "TurnResult",
    "ModelLoop",
    "ModelLoopResult",
    "WorkflowBranchSelector",
    "SessionService",
    "PartyFinalizer",
    "InMemoryPartyFinalizer",
    "StepHooks",
    "WizardSettings",
    # Protocol
    "WizardStep",
    "ConfirmationRequest",
    "ConfirmationDecision",
    "Pending",
    "Approved",
    "Revised",
    # Models
    "WizardSession",
    "WizardMessage",
    "SessionStatus",
    "PartyInfo",
    "Guest",
    "MenuPlan",
    "NewRecipe",
    "ExistingRecipeRef",
    "TimelineTask",
    # Events
    "EventSink",
    "ListEventSink",
    "QueueEventSink",
    "StreamWriter",
    "WizardEvent",
    # Middleware
    "TurnMiddleware",
    "LoggingMiddleware",
    # Errors
    "PartyWizardError",
    "ValidationError",
    "NotFoundError",
    "ProtocolError",
    "ConfigurationError",
    "ExtractionError",
    "ModelError",
    "StorageError",
]
