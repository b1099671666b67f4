"""Runtime data model for the party wizard.

Every dataclass here has a runtime form (native ``datetime`` values, enums)
and a storage form produced by ``to_dict`` / consumed by ``from_dict`` that is
made only of JSON-safe primitives. Converting storage -> runtime -> storage is
lossless for every field.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .exceptions import ValidationError
from .protocol import ConfirmationState
from .steps import WizardStep, parse_step

COURSES = ("appetizer", "main", "side", "dessert", "drink")
AMBITION_LEVELS = ("simple", "moderate", "ambitious")
SOURCE_TYPES = ("url", "photo", "ai", "manual")

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class SessionStatus(str, Enum):
    """Lifecycle status of a wizard session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class PartyInfo:
    """Party details gathered in the party-info step."""

    name: str
    date_time: datetime
    location: str | None = None
    description: str | None = None
    allow_contributions: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "date_time": self.date_time.isoformat(),
            "location": self.location,
            "description": self.description,
            "allow_contributions": self.allow_contributions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartyInfo:
        return cls(
            name=data["name"],
            date_time=datetime.fromisoformat(data["date_time"]),
            location=data.get("location"),
            description=data.get("description"),
            allow_contributions=bool(data.get("allow_contributions", False)),
        )


@dataclass
class Guest:
    """An invited guest. At least one contact channel is required."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.phone or "Guest"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Guest:
        return cls(
            name=data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
        )


@dataclass
class Ingredient:
    ingredient: str
    amount: str | None = None
    unit: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ingredient": self.ingredient,
            "amount": self.amount,
            "unit": self.unit,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ingredient:
        amount = data.get("amount")
        return cls(
            ingredient=str(data["ingredient"]),
            amount=None if amount is None else str(amount),
            unit=data.get("unit"),
            notes=data.get("notes"),
        )


@dataclass
class Instruction:
    step: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instruction:
        return cls(step=int(data["step"]), description=str(data["description"]))


@dataclass
class NewRecipe:
    """A recipe created during the menu step (imported, photographed, or generated).

    Attributes:
        name: Recipe title
        source_type: One of ``url``, ``photo``, ``ai``, ``manual``
        source_url: Page the recipe was imported from (tracked for dedup)
        image_hash: SHA-256 of the photographed image (tracked for dedup)
    """

    name: str
    source_type: str
    description: str | None = None
    ingredients: list[Ingredient] = field(default_factory=list)
    instructions: list[Instruction] = field(default_factory=list)
    prep_time_minutes: int | None = None
    cook_time_minutes: int | None = None
    servings: int | None = None
    tags: list[str] = field(default_factory=list)
    course: str | None = None
    source_url: str | None = None
    image_hash: str | None = None

    def __post_init__(self) -> None:
        if self.source_type not in SOURCE_TYPES:
            raise ValidationError(
                f"Invalid recipe source type: {self.source_type}",
                context={"source_type": self.source_type},
            )
        if self.course is not None and self.course not in COURSES:
            raise ValidationError(
                f"Invalid course: {self.course}", context={"course": self.course}
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "ingredients": [i.to_dict() for i in self.ingredients],
            "instructions": [i.to_dict() for i in self.instructions],
            "prep_time_minutes": self.prep_time_minutes,
            "cook_time_minutes": self.cook_time_minutes,
            "servings": self.servings,
            "tags": list(self.tags),
            "course": self.course,
            "source_type": self.source_type,
            "source_url": self.source_url,
            "image_hash": self.image_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NewRecipe:
        return cls(
            name=data["name"],
            source_type=data["source_type"],
            description=data.get("description"),
            ingredients=[Ingredient.from_dict(i) for i in data.get("ingredients", [])],
            instructions=[
                Instruction.from_dict(i) for i in data.get("instructions", [])
            ],
            prep_time_minutes=data.get("prep_time_minutes"),
            cook_time_minutes=data.get("cook_time_minutes"),
            servings=data.get("servings"),
            tags=list(data.get("tags", [])),
            course=data.get("course"),
            source_url=data.get("source_url"),
            image_hash=data.get("image_hash"),
        )


@dataclass
class ExistingRecipeRef:
    """Reference into the user's recipe library plus display metadata."""

    recipe_id: str
    name: str
    course: str | None = None
    scaled_servings: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "course": self.course,
            "scaled_servings": self.scaled_servings,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExistingRecipeRef:
        return cls(
            recipe_id=data["recipe_id"],
            name=data["name"],
            course=data.get("course"),
            scaled_servings=data.get("scaled_servings"),
        )


@dataclass
class MenuPlan:
    """Menu under construction, including the dedup bookkeeping lists."""

    existing_recipes: list[ExistingRecipeRef] = field(default_factory=list)
    new_recipes: list[NewRecipe] = field(default_factory=list)
    processed_urls: list[str] = field(default_factory=list)
    processed_image_hashes: list[str] = field(default_factory=list)
    dietary_restrictions: list[str] = field(default_factory=list)
    ambition_level: str | None = None

    @property
    def recipe_names(self) -> list[str]:
        return [r.name for r in self.existing_recipes] + [
            r.name for r in self.new_recipes
        ]

    @property
    def is_empty(self) -> bool:
        return not self.existing_recipes and not self.new_recipes

    def to_dict(self) -> dict[str, Any]:
        return {
            "existing_recipes": [r.to_dict() for r in self.existing_recipes],
            "new_recipes": [r.to_dict() for r in self.new_recipes],
            "processed_urls": list(self.processed_urls),
            "processed_image_hashes": list(self.processed_image_hashes),
            "dietary_restrictions": list(self.dietary_restrictions),
            "ambition_level": self.ambition_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MenuPlan:
        return cls(
            existing_recipes=[
                ExistingRecipeRef.from_dict(r) for r in data.get("existing_recipes", [])
            ],
            new_recipes=[NewRecipe.from_dict(r) for r in data.get("new_recipes", [])],
            processed_urls=list(data.get("processed_urls", [])),
            processed_image_hashes=list(data.get("processed_image_hashes", [])),
            dietary_restrictions=list(data.get("dietary_restrictions", [])),
            ambition_level=data.get("ambition_level"),
        )


@dataclass
class TimelineTask:
    """A single scheduled cooking or hosting task.

    Attributes:
        recipe_id: Library recipe this task belongs to, if any
        description: What to do
        days_before_party: 0 for the party day, 1 for the day before, ...
        scheduled_time: Start time as ``HH:MM``
        duration_minutes: Expected duration, always positive
        is_phase_start: Marks a milestone that triggers a reminder
        phase_description: Label for the phase when ``is_phase_start`` is set
    """

    description: str
    days_before_party: int
    scheduled_time: str
    duration_minutes: int
    recipe_id: str | None = None
    is_phase_start: bool = False
    phase_description: str | None = None

    def __post_init__(self) -> None:
        if self.days_before_party < 0:
            raise ValidationError(
                "days_before_party must be >= 0",
                context={"days_before_party": self.days_before_party},
            )
        if self.duration_minutes <= 0:
            raise ValidationError(
                "duration_minutes must be > 0",
                context={"duration_minutes": self.duration_minutes},
            )
        if not _HHMM.match(self.scheduled_time):
            raise ValidationError(
                "scheduled_time must be HH:MM",
                context={"scheduled_time": self.scheduled_time},
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "description": self.description,
            "days_before_party": self.days_before_party,
            "scheduled_time": self.scheduled_time,
            "duration_minutes": self.duration_minutes,
            "is_phase_start": self.is_phase_start,
            "phase_description": self.phase_description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimelineTask:
        return cls(
            recipe_id=data.get("recipe_id"),
            description=str(data["description"]),
            days_before_party=int(data["days_before_party"]),
            scheduled_time=str(data["scheduled_time"]),
            duration_minutes=int(data["duration_minutes"]),
            is_phase_start=bool(data.get("is_phase_start", False)),
            phase_description=data.get("phase_description"),
        )


@dataclass
class TransitionRecord:
    """Audit entry for an approved step transition."""

    from_step: WizardStep
    to_step: WizardStep
    request_id: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_step": self.from_step.value,
            "to_step": self.to_step.value,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransitionRecord:
        return cls(
            from_step=parse_step(data["from_step"]),
            to_step=parse_step(data["to_step"]),
            request_id=data["request_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class WizardSession:
    """Durable record of one user's progress through the wizard.

    ``furthest_step_index`` never decreases and is always at least the index
    of ``current_step``. The confirmation state lives here, beside the
    transcript, rather than inside message parts.
    """

    user_id: str
    id: str = field(default_factory=new_id)
    current_step: WizardStep = WizardStep.PARTY_INFO
    furthest_step_index: int = 0
    party_info: PartyInfo | None = None
    guest_list: list[Guest] = field(default_factory=list)
    menu_plan: MenuPlan | None = None
    timeline: list[TimelineTask] | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    party_id: str | None = None
    confirmation: ConfirmationState | None = None
    transitions: list[TransitionRecord] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def reach(self, step: WizardStep) -> None:
        """Raise the furthest-step mark to ``step`` if it is further along."""
        self.furthest_step_index = max(self.furthest_step_index, step.index)

    def ensure_menu_plan(self) -> MenuPlan:
        if self.menu_plan is None:
            self.menu_plan = MenuPlan()
        return self.menu_plan


@dataclass
class WizardMessage:
    """One chat turn in a step's transcript.

    Parts are plain dictionaries tagged by ``type``: ``text``, ``image``,
    ``file``, ``data-*`` events, and ``tool-*`` invocation records.
    """

    session_id: str
    step: WizardStep
    role: str
    parts: list[dict[str, Any]] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def text(self) -> str:
        return "".join(p.get("text", "") for p in self.parts if p.get("type") == "text")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "step": self.step.value,
            "role": self.role,
            "parts": self.parts,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WizardMessage:
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            step=parse_step(data["step"]),
            role=data["role"],
            parts=list(data.get("parts", [])),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def data_part(name: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": f"data-{name}", "data": data}
