from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, get_args, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from workshop.core.fire import (
    MAX_DIMENSION_SCORE,
    MIN_DIMENSION_SCORE,
    calculate_fire_score,
    is_fire_score,
)
from workshop.core.logging import get_logger

logger = get_logger(__name__)

MAX_TOP_THREE = 3
MAX_SELECTED_PAINS = 5
MIN_FIRE_SCORE = 4
MAX_FIRE_SCORE = 12

Source = Literal["user", "assistant"]
PainType = Literal["functional", "emotional", "social", "anticipated"]
Rating = Annotated[int, Field(ge=0, le=5)]
FireComponent = Annotated[int, Field(ge=MIN_DIMENSION_SCORE, le=MAX_DIMENSION_SCORE)]


def split_lines(text: str | None) -> list[str]:
    if not text:
        return []
    return [line.strip() for line in str(text).splitlines() if line.strip()]


class WorkshopModel(BaseModel):
    """Base for every workshop record: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class IdeaStatement(WorkshopModel):
    description: str = ""
    target_customers: str = ""


class BigIdea(IdeaStatement):
    version: Literal["initial"] = "initial"


class RefinedIdea(IdeaStatement):
    version: Literal["refined"] = "refined"


class UnderlyingGoal(WorkshopModel):
    business_goal: str = ""


class SourcedRecord(WorkshopModel):
    id: str
    description: str = ""
    source: Source = "user"

    @field_validator("source", mode="before")
    @classmethod
    def _normalise_source(cls, value: Any) -> Any:
        # older documents tag generated items as "bot"
        if value == "bot":
            return "assistant"
        return value


class TriggerEvent(SourcedRecord):
    pass


class Job(SourcedRecord):
    is_overarching: bool = False
    selected: bool = False


class TargetBuyer(SourcedRecord):
    urgency: Rating = 0
    willingness: Rating = 0
    long_term_value: Rating = 0
    solution_fit: Rating = 0
    accessibility: Rating = 0
    shortlisted: bool = False
    is_top_three: bool = False

    @property
    def rating_total(self) -> int:
        return self.urgency + self.willingness + self.long_term_value + self.solution_fit + self.accessibility


class FireScores(WorkshopModel):
    frequency: FireComponent = 1
    intensity: FireComponent = 1
    recurring: FireComponent = 1
    expensive: FireComponent = 1


class Pain(SourcedRecord):
    buyer_segment: str = ""
    type: PainType = "functional"
    is_fire: bool = False
    fire_scores: FireScores | None = None
    calculated_fire_score: Annotated[int, Field(ge=MIN_FIRE_SCORE, le=MAX_FIRE_SCORE)] | None = None

    @field_validator("calculated_fire_score", mode="before")
    @classmethod
    def _drop_unusable_score(cls, value: Any) -> Any:
        # a stored 0 or out-of-range total means "not scored yet"
        try:
            score = int(value)
        except (TypeError, ValueError):
            return None
        if not MIN_FIRE_SCORE <= score <= MAX_FIRE_SCORE:
            return None
        return score

    @model_validator(mode="after")
    def _derive_fire(self) -> "Pain":
        if self.fire_scores is not None:
            self.calculated_fire_score = calculate_fire_score(self.fire_scores)
        if is_fire_score(self.calculated_fire_score):
            self.is_fire = True
        return self


class PainstormingResults(WorkshopModel):
    aha_moments: str = ""


class ProblemUp(WorkshopModel):
    selected_pains: list[str] = Field(default_factory=list)
    selected_buyers: list[str] = Field(default_factory=list)
    relevant_trigger_ids: list[str] = Field(default_factory=list)
    target_moment: str = ""
    notes: str = ""

    @field_validator("selected_pains")
    @classmethod
    def _cap_selected_pains(cls, value: list[str]) -> list[str]:
        unique: list[str] = []
        for pain_id in value:
            if pain_id not in unique:
                unique.append(pain_id)
        return unique[:MAX_SELECTED_PAINS]


class TargetMarketProfile(WorkshopModel):
    name: str = ""
    common_traits: list[str] = Field(default_factory=list)
    common_triggers: list[str] = Field(default_factory=list)
    core_transformation: str = ""


class NextSteps(WorkshopModel):
    """Next-step plans; the list form is canonical, the string form is derived."""

    pre_sell_plan_items: list[str] = Field(default_factory=list)
    workshop_reflection_items: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _absorb_legacy_strings(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        pairs = (
            (("preSellPlanItems", "pre_sell_plan_items"), ("preSellPlan", "pre_sell_plan")),
            (("workshopReflectionItems", "workshop_reflection_items"), ("workshopReflections", "workshop_reflections")),
        )
        for list_keys, legacy_keys in pairs:
            if any(data.get(key) for key in list_keys):
                continue
            legacy = next((data[key] for key in legacy_keys if isinstance(data.get(key), str)), None)
            if legacy is not None:
                data[list_keys[0]] = split_lines(legacy)
        return data

    @computed_field(alias="preSellPlan")  # type: ignore[prop-decorator]
    @property
    def pre_sell_plan(self) -> str:
        return "\n".join(self.pre_sell_plan_items)

    @computed_field(alias="workshopReflections")  # type: ignore[prop-decorator]
    @property
    def workshop_reflections(self) -> str:
        return "\n".join(self.workshop_reflection_items)


class Reflections(WorkshopModel):
    key_insights: str = ""
    next_steps: str = ""
    personal_reflection: str = ""


class WorkshopData(WorkshopModel):
    """Aggregate root holding every entity collection for one session."""

    big_idea: BigIdea | None = None
    underlying_goal: UnderlyingGoal | None = None
    trigger_events: list[TriggerEvent] = Field(default_factory=list)
    jobs: list[Job] = Field(default_factory=list)
    target_buyers: list[TargetBuyer] = Field(default_factory=list)
    pains: list[Pain] = Field(default_factory=list)
    painstorming_results: PainstormingResults | None = None
    problem_up: ProblemUp | None = None
    target_market_profile: TargetMarketProfile | None = None
    refined_idea: RefinedIdea | None = None
    next_steps: NextSteps | None = None
    reflections: Reflections | None = None

    @model_validator(mode="after")
    def _enforce_exclusive_flags(self) -> "WorkshopData":
        flagged = 0
        buyers: list[TargetBuyer] = []
        for buyer in self.target_buyers:
            if buyer.is_top_three:
                flagged += 1
                if flagged > MAX_TOP_THREE:
                    buyer = buyer.model_copy(update={"is_top_three": False})
            buyers.append(buyer)
        self.target_buyers = buyers

        seen_overarching = False
        jobs: list[Job] = []
        for job in self.jobs:
            if job.is_overarching:
                if seen_overarching:
                    job = job.model_copy(update={"is_overarching": False})
                seen_overarching = True
            jobs.append(job)
        self.jobs = jobs
        return self

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "WorkshopData":
        """Validate a stored document, dropping only the records that cannot be read.

        A malformed list item is removed from its list and a malformed single
        record falls back to its empty default; every other field survives.
        """

        if not payload:
            return cls()
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            logger.warning("stored workshop data has %d invalid value(s), repairing", exc.error_count())
        return cls.model_validate(_repair_payload(dict(payload)))


def _is_valid(adapter: TypeAdapter[Any], value: Any) -> bool:
    try:
        adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _repair_payload(payload: dict[str, Any]) -> dict[str, Any]:
    repaired: dict[str, Any] = {}
    for key, value in payload.items():
        try:
            name = resolve_field_name(key)
        except KeyError:
            continue
        annotation = WorkshopData.model_fields[name].annotation
        if get_origin(annotation) is list and isinstance(value, list):
            item_adapter: TypeAdapter[Any] = TypeAdapter(get_args(annotation)[0])
            kept = [item for item in value if _is_valid(item_adapter, item)]
            if len(kept) != len(value):
                logger.warning("dropped %d unreadable %s record(s)", len(value) - len(kept), key)
            repaired[name] = kept
        elif _is_valid(TypeAdapter(annotation), value):
            repaired[name] = value
        else:
            logger.warning("dropped unreadable %s", key)
    return repaired


def resolve_field_name(key: str) -> str:
    """Map a camelCase or snake_case key to the ``WorkshopData`` attribute name."""

    for name, info in WorkshopData.model_fields.items():
        if key in (name, info.alias, to_camel(name)):
            return name
    raise KeyError(key)


def empty_workshop_data() -> WorkshopData:
    """The documented empty aggregate: empty collections, unset single records."""

    return WorkshopData()


__all__ = [
    "MAX_SELECTED_PAINS",
    "MAX_TOP_THREE",
    "BigIdea",
    "FireScores",
    "Job",
    "NextSteps",
    "Pain",
    "PainstormingResults",
    "ProblemUp",
    "Reflections",
    "RefinedIdea",
    "TargetBuyer",
    "TargetMarketProfile",
    "TriggerEvent",
    "UnderlyingGoal",
    "WorkshopData",
    "WorkshopModel",
    "empty_workshop_data",
    "resolve_field_name",
    "split_lines",
]
