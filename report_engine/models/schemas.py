"""
Pydantic models and schemas for the competitive report engine.

This module defines all data structures used by the generation orchestrator
and the integrity validator, ensuring type safety, validation, and
serialization consistency.

Models:
    - Project, Product, Competitor, Snapshot: read-only generation inputs
    - GenerationRequest / GenerationResponse: initial report contract
    - Report, ReportMetadata, ReportVersion: persisted report records
    - ComparativeAnalysis and comparative/intelligent request/response models
    - IntegrityResult, ZombieDetectionResult, ZombieRecoveryResult,
      ProjectReportHealth: validator results
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Self
from uuid import uuid4

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=False,
        populate_by_name=True,
        use_enum_values=True,
        ser_json_timedelta="iso8601",
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string."""
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


class TimestampMixin(BaseModel):
    """Mixin for models that need timestamp tracking."""

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Record creation timestamp in ISO 8601 format",
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="Last update timestamp in ISO 8601 format",
    )

    @field_serializer("created_at", "updated_at", when_used="json")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        if not value:
            return None
        # If naive, assume UTC and append Z
        if value.tzinfo is None:
            return value.isoformat() + "Z"
        return value.isoformat()


MAX_TITLE_LENGTH = 300


def new_id() -> str:
    """Generate a collision-resistant record identifier."""
    return uuid4().hex


# =============================================================================
# Enums
# =============================================================================

class ReportStatus(str, Enum):
    """Lifecycle status of a report."""
    NOT_STARTED = "not_started"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisMethod(str, Enum):
    """How the report body was produced."""
    AI_POWERED = "ai_powered"
    RULE_BASED = "rule_based"


class ReportType(str, Enum):
    """Report-type tag stored in report metadata."""
    INITIAL_COMPETITIVE = "initial_competitive"
    PROJECT_ONLY = "project_only"
    FALLBACK_OVERVIEW = "fallback_overview"
    COMPARATIVE = "comparative"


class ReportTemplateName(str, Enum):
    """Section templates available to the comparative report path."""
    COMPREHENSIVE = "comprehensive"
    EXECUTIVE = "executive"
    TECHNICAL = "technical"
    STRATEGIC = "strategic"


class ZombieRisk(str, Enum):
    """Risk that a report is (or becomes) a zombie."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"  # reserved; integrity checks currently assign only LOW or HIGH
    HIGH = "HIGH"


class ErrorType(str, Enum):
    """Error type classification carried by failed responses."""
    VALIDATION_ERROR = "validation_error"
    DEPENDENCY_ERROR = "dependency_error"
    ANALYSIS_ERROR = "analysis_error"
    TIMEOUT_ERROR = "timeout_error"
    PERSISTENCE_ERROR = "persistence_error"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# Project Inputs (read-only)
# =============================================================================

class Product(BaseModel):
    """The project's own product."""

    name: str = Field(..., min_length=1, description="Product name")
    website: Optional[str] = Field(default=None, description="Product website URL")
    description: Optional[str] = Field(default=None, description="Short product description")


class Snapshot(BaseModel):
    """Captured website content for a competitor."""

    id: str = Field(default_factory=new_id)
    content: Optional[str] = Field(default=None, description="Captured content blob")
    url: Optional[str] = Field(default=None, description="Source URL")
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Capture timestamp",
    )


class Competitor(BaseModel):
    """A competitor with its captured snapshots, newest first."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    website: Optional[str] = None
    snapshots: list[Snapshot] = Field(default_factory=list)

    @field_validator("snapshots")
    @classmethod
    def sort_newest_first(cls, v: list[Snapshot]) -> list[Snapshot]:
        """Keep snapshots ordered by capture time, most recent first."""
        return sorted(v, key=lambda s: s.created_at, reverse=True)

    @property
    def latest_snapshot(self) -> Optional[Snapshot]:
        return self.snapshots[0] if self.snapshots else None

    @property
    def is_data_ready(self) -> bool:
        """A competitor is data-ready once it has at least one snapshot."""
        return bool(self.snapshots)


class Project(BaseModel):
    """A project: one product tracked against an ordered set of competitors."""

    id: str = Field(default_factory=new_id)
    name: str = Field(default="", description="Project display name")
    product: Product
    competitors: list[Competitor] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# Reports
# =============================================================================

class ReportMetadata(BaseModel):
    """Metadata recorded for every generated report."""

    generated_at: datetime = Field(default_factory=datetime.utcnow)
    project_id: str
    competitor_count: int = Field(default=0, ge=0)
    data_completeness_score: int = Field(
        ...,
        ge=0,
        le=100,
        description="Percentage of competitors with at least one snapshot",
    )
    analysis_method: AnalysisMethod
    report_type: ReportType
    correlation_id: str
    template: Optional[str] = None
    confidence_score: Optional[float] = None


class ReportSection(BaseModel):
    """Individual report section."""

    id: str = Field(default_factory=new_id)
    title: str = Field(..., description="Section title")
    content: str = Field(..., description="Section content (markdown)")
    section_type: str = Field(default="general")
    order: int = Field(default=0, description="Section display order")


class Report(TimestampMixin):
    """
    A generated report.

    Reports are only ever created by the orchestrator at the end of a
    successful (possibly degraded) generation attempt, together with their
    first ReportVersion.
    """

    id: str = Field(default_factory=new_id)
    project_id: str
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = None
    content: str = Field(default="", description="Report body (markdown)")
    format: Literal["markdown"] = "markdown"
    status: ReportStatus = ReportStatus.NOT_STARTED
    metadata: ReportMetadata
    sections: list[ReportSection] = Field(default_factory=list)


class ReportVersion(TimestampMixin):
    """Durable content payload for a report. Version numbers start at 1."""

    id: str = Field(default_factory=new_id)
    report_id: str
    version: int = Field(default=1, ge=1)
    content: Optional[dict[str, Any]] = Field(
        default=None,
        description="Durable payload; must be non-null for the parent to be valid",
    )

    @property
    def has_content(self) -> bool:
        return bool(self.content)


# =============================================================================
# Initial Report Contract
# =============================================================================

class GenerationOptions(BaseModel):
    """Caller options for an initial report."""

    fallback_to_partial_data: bool = Field(
        default=False,
        description="Proceed with degraded output instead of failing",
    )
    template: str = Field(default=ReportTemplateName.COMPREHENSIVE.value)
    format: str = Field(default="markdown", description="Only markdown is produced")


class GenerationRequest(BaseModel):
    """Request for an initial report."""

    project_id: str = Field(default="", description="Project to report on")
    task_id: Optional[str] = Field(
        default=None,
        description="Caller-supplied idempotency/trace token; generated if absent",
    )
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerationResponse(BaseModel):
    """Outcome of a generation attempt. Terminal failures are returned, not raised."""

    success: bool
    task_id: str
    project_id: str
    status: ReportStatus
    report: Optional[Report] = None
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    processing_time_ms: int = Field(default=0, ge=0)
    message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    correlation_id: str


# =============================================================================
# Comparative / Intelligent Reports
# =============================================================================

class CompetitorAnalysis(BaseModel):
    """Per-competitor findings inside a comparative analysis."""

    name: str
    features: list[str] = Field(default_factory=list)
    primary_message: str = ""
    value_proposition: str = ""
    target_audience: str = ""


class ComparativeAnalysis(BaseModel):
    """A completed product-vs-competitors analysis used as report input."""

    id: str = Field(default_factory=new_id)
    analysis_date: datetime = Field(default_factory=datetime.utcnow)
    competitors: list[CompetitorAnalysis] = Field(default_factory=list)
    product_features: list[str] = Field(default_factory=list)
    market_position: str = "Unknown"
    opportunity_score: float = Field(default=0.0, ge=0, le=100)
    threat_level: str = "Medium"
    confidence_score: float = Field(default=0.0, ge=0, le=100)
    key_strengths: list[str] = Field(default_factory=list)
    key_weaknesses: list[str] = Field(default_factory=list)
    market_opportunities: list[str] = Field(default_factory=list)
    competitive_advantages: list[str] = Field(default_factory=list)
    immediate_recommendations: list[str] = Field(default_factory=list)
    short_term_recommendations: list[str] = Field(default_factory=list)
    long_term_recommendations: list[str] = Field(default_factory=list)
    priority_score: float = Field(default=0.0, ge=0, le=100)
    analysis_method: AnalysisMethod = AnalysisMethod.AI_POWERED
    data_quality: str = "medium"


class ComparativeReportOptions(BaseModel):
    template: str = Field(default=ReportTemplateName.COMPREHENSIVE.value)
    include_charts: bool = False


class ComparativeReportRequest(BaseModel):
    project_id: str
    task_id: Optional[str] = None
    product: Product
    analysis: ComparativeAnalysis
    options: ComparativeReportOptions = Field(default_factory=ComparativeReportOptions)


class ComparativeReportResponse(BaseModel):
    success: bool
    task_id: str
    project_id: str
    report: Optional[Report] = None
    processing_time_ms: int = 0
    tokens_used: int = 0
    cost: float = 0.0
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    correlation_id: str


class IntelligentReportRequest(ComparativeReportRequest):
    enhance_with_ai: bool = False


class IntelligentReportResponse(ComparativeReportResponse):
    actionable_insights: list[str] = Field(default_factory=list)
    enhanced_content: str = ""


# =============================================================================
# Integrity Validation
# =============================================================================

class ReportSummary(BaseModel):
    """Compact report facts attached to integrity results."""

    id: str
    status: ReportStatus
    version_count: int
    has_content: bool


class IntegrityResult(BaseModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    zombie_risk: ZombieRisk
    can_be_marked_completed: bool
    report_data: Optional[ReportSummary] = None


class ZombieReportInfo(BaseModel):
    report_id: str
    project_id: str
    project_name: Optional[str] = None
    report_name: str
    created_at: datetime
    status: ReportStatus


class ZombieDetectionResult(BaseModel):
    zombies_found: int
    reports: list[ZombieReportInfo] = Field(default_factory=list)
    scanned_at: datetime = Field(default_factory=datetime.utcnow)
    error: Optional[str] = None


class ZombieRecoveryResult(BaseModel):
    total_found: int
    recovered: int
    failed: int
    recovery_rate: int = Field(..., ge=0, le=100)
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    error: Optional[str] = None


class ProjectReportHealth(BaseModel):
    project_id: str
    project_name: str
    has_initial_reports: bool
    total_reports: int
    zombie_reports: int = 0
    last_report_date: Optional[datetime] = None
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    status: Literal["healthy", "warning", "critical"]


__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "new_id",
    "MAX_TITLE_LENGTH",

    # Enums
    "ReportStatus",
    "AnalysisMethod",
    "ReportType",
    "ReportTemplateName",
    "ZombieRisk",
    "ErrorType",

    # Inputs
    "Product",
    "Snapshot",
    "Competitor",
    "Project",

    # Reports
    "ReportMetadata",
    "ReportSection",
    "Report",
    "ReportVersion",

    # Initial report contract
    "GenerationOptions",
    "GenerationRequest",
    "GenerationResponse",

    # Comparative reports
    "CompetitorAnalysis",
    "ComparativeAnalysis",
    "ComparativeReportOptions",
    "ComparativeReportRequest",
    "ComparativeReportResponse",
    "IntelligentReportRequest",
    "IntelligentReportResponse",

    # Validation
    "ReportSummary",
    "IntegrityResult",
    "ZombieReportInfo",
    "ZombieDetectionResult",
    "ZombieRecoveryResult",
    "ProjectReportHealth",
]
