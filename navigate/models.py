from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

StakeholderType = Literal["Government", "Research", "Industry", "Intermediary"]
TechnologyCategory = Literal["H2Production", "H2Storage", "FuelCells", "Aircraft", "Infrastructure"]
FundingType = Literal["Public", "Private", "Mixed"]
LifecycleStatus = Literal["Active", "Completed", "Planned"]
RelationshipType = Literal[
    "funds", "researches", "collaborates_with", "advances", "participates_in", "owns", "supplies",
]
TRLColor = Literal["red", "amber", "green"]
StrengthTier = Literal["weak", "medium", "strong"]
InsightType = Literal["gap", "opportunity", "risk", "trend"]

STAKEHOLDER_TYPES: tuple[str, ...] = ("Government", "Research", "Industry", "Intermediary")
TECHNOLOGY_CATEGORIES: tuple[str, ...] = ("H2Production", "H2Storage", "FuelCells", "Aircraft", "Infrastructure")
FUNDING_TYPES: tuple[str, ...] = ("Public", "Private", "Mixed")
INSIGHT_TYPES: tuple[str, ...] = ("gap", "opportunity", "risk", "trend")
SYMMETRIC_RELATIONSHIP_TYPES = frozenset({"collaborates_with"})

TRL_MIN, TRL_MAX = 1, 9

# Field annotations for classes that also have a field named "date"
ISODate = date

# Strength thresholds on relationship weight: strong >= 0.7, medium >= 0.4.
STRONG_WEIGHT = 0.7
MEDIUM_WEIGHT = 0.4


def clamp_trl(value: Any) -> int:
    """Coerce a TRL value to an int in [1, 9]."""
    return max(TRL_MIN, min(TRL_MAX, int(value)))


def trl_color(trl: int) -> TRLColor:
    """Colour band for a TRL: 1-3 red, 4-6 amber, 7-9 green."""
    trl = clamp_trl(trl)
    if trl >= 7:
        return "green"
    if trl >= 4:
        return "amber"
    return "red"


def strength_tier(weight: float) -> StrengthTier:
    """Bucket a relationship weight into a strength tier (monotonic in weight)."""
    if weight >= STRONG_WEIGHT:
        return "strong"
    if weight >= MEDIUM_WEIGHT:
        return "medium"
    return "weak"


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DataQuality(_Record):
    confidence: Literal["verified", "estimated", "placeholder"] = "placeholder"
    last_verified: datetime | None = None
    verified_by: str | None = None
    notes: str | None = None


class KnowledgeSource(_Record):
    title: str
    url: str = ""
    date: ISODate | None = None
    type: Literal["report", "news", "interview", "internal_doc"] = "report"


class KnowledgeBase(_Record):
    content: str = ""
    sources: list[KnowledgeSource] = []
    last_updated: datetime | None = None
    contributors: list[str] = []
    tags: list[str] = []
    confidence: Literal["verified", "unverified", "speculative"] = "unverified"


class Location(_Record):
    city: str | None = None
    region: str = ""
    country: str = ""


class Contact(_Record):
    email: str | None = None
    website: str | None = None
    contact_person: str | None = None


class CapacityScenarios(_Record):
    optimistic: float
    conservative: float
    current: float


class FundingByType(_Record):
    public: float = 0.0
    private: float = 0.0
    mixed: float = 0.0


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Stakeholder(_Record):
    id: str
    name: str
    type: StakeholderType
    sector: str = ""
    funding_capacity: Literal["High", "Medium", "Low"] = "Medium"
    location: Location = Location()
    contact: Contact = Contact()
    description: str = ""
    tags: list[str] = []
    data_quality: DataQuality = DataQuality()
    knowledge_base: KnowledgeBase | None = None
    capacity_scenarios: CapacityScenarios | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Derived by EntityStore; never authoritative
    total_funding_received: float = 0.0
    total_funding_provided: float = 0.0
    relationship_count: int = 0


class Technology(_Record):
    id: str
    name: str
    category: TechnologyCategory
    trl_current: int
    trl_projected_2030: int | None = None
    trl_projected_2050: int | None = None
    maturity_risk: str = ""
    deployment_ready: bool = False
    description: str = ""
    tags: list[str] = []
    regional_availability: list[str] | None = None
    knowledge_base: KnowledgeBase | None = None
    data_quality: DataQuality = DataQuality()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Derived by EntityStore; never authoritative
    total_funding: float = 0.0
    funding_by_type: FundingByType = FundingByType()
    stakeholder_count: int = 0
    project_count: int = 0

    @field_validator("trl_current", mode="before")
    @classmethod
    def _clamp_trl(cls, v: Any) -> int:
        return clamp_trl(v)

    @field_validator("trl_projected_2030", "trl_projected_2050", mode="before")
    @classmethod
    def _clamp_projection(cls, v: Any) -> int | None:
        return None if v is None else clamp_trl(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def trl_color(self) -> TRLColor:
        return trl_color(self.trl_current)


class TRLImpact(_Record):
    before: int
    after: int


class FundingEvent(_Record):
    id: str
    amount: float = Field(ge=0)
    currency: Literal["GBP"] = "GBP"
    funding_type: FundingType
    source_id: str
    recipient_id: str
    recipient_type: Literal["stakeholder", "project"] = "stakeholder"
    program: str = ""
    program_type: Literal["grant", "contract", "SBRI", "innovation_voucher", "partnership"] | None = None
    date: ISODate
    start_date: ISODate | None = None
    end_date: ISODate | None = None
    status: LifecycleStatus = "Active"
    impact_description: str = ""
    technologies_supported: list[str] = []
    trl_impact: TRLImpact | None = None
    data_quality: DataQuality = DataQuality()
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectOutcomes(_Record):
    trl_advancement: int | None = None
    publications: int | None = None
    patents: int | None = None
    commercial_impact: str | None = None


class Project(_Record):
    id: str
    name: str
    status: LifecycleStatus = "Active"
    start_date: date
    end_date: date | None = None
    participants: list[str] = []
    lead_organization: str | None = None
    technologies: list[str] = []
    primary_technology: str | None = None
    total_budget: float | None = None
    funding_events: list[str] = []
    description: str = ""
    objectives: list[str] = []
    tags: list[str] = []
    outcomes: ProjectOutcomes | None = None
    knowledge_base: KnowledgeBase | None = None
    data_quality: DataQuality = DataQuality()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_months(self) -> int | None:
        if self.end_date is None:
            return None
        months = (self.end_date.year - self.start_date.year) * 12 + self.end_date.month - self.start_date.month
        return max(0, months)


class RelationshipMetadata(_Record):
    """Optional context on a relationship. ``strength`` overrides the graph edge default."""
    start_date: date | None = None
    end_date: date | None = None
    amount: float | None = None
    description: str | None = None
    program: str | None = None
    project_id: str | None = None
    strength: float | None = None


class Relationship(_Record):
    id: str
    source: str
    target: str
    type: RelationshipType
    weight: float = 0.0
    metadata: RelationshipMetadata = RelationshipMetadata()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def strength(self) -> StrengthTier:
        return strength_tier(self.weight)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def bidirectional(self) -> bool:
        return self.type in SYMMETRIC_RELATIONSHIP_TYPES


class DatasetMetadata(_Record):
    generated_at: datetime | None = None
    counts: dict[str, int] = {}
    version: str = "1.0.0"


class Dataset(_Record):
    stakeholders: list[Stakeholder] = []
    technologies: list[Technology] = []
    funding_events: list[FundingEvent] = []
    projects: list[Project] = []
    relationships: list[Relationship] = []
    metadata: DatasetMetadata | None = None


# ---------------------------------------------------------------------------
# Insights and chat
# ---------------------------------------------------------------------------


class Insight(_Record):
    id: str
    type: InsightType
    title: str
    description: str = ""
    entities: list[str] = []
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    actionable: bool = False


class ChatMessage(_Record):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatContext(_Record):
    current_view: str = "dashboard"
    selected_entities: list[str] = []
    filters: dict[str, Any] = {}
    history: list[ChatMessage] = []


class ChatActions(_Record):
    """UI actions an assistant reply may suggest."""
    highlight: list[str] | None = None
    filter: dict[str, Any] | None = None
    switch_view: str | None = Field(default=None, validation_alias=AliasChoices("switch_view", "switchView"))


class ChatResponse(_Record):
    message: str
    actions: ChatActions | None = None
    insights: list[Insight] | None = None


# ---------------------------------------------------------------------------
# Persistence: saved filter presets
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class FilterPreset(Base):
    __tablename__ = "filter_presets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    filters_json: Mapped[str] = mapped_column(Text, default="{}")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
