"""Data models module for the Competitive Report Engine."""

from report_engine.models.schemas import (
    # Base Models
    BaseModel,
    TimestampMixin,

    # Enums
    ReportStatus,
    AnalysisMethod,
    ReportType,
    ReportTemplateName,
    ZombieRisk,
    ErrorType,

    # Project Models
    Product,
    Snapshot,
    Competitor,
    Project,

    # Report Models
    ReportMetadata,
    ReportSection,
    Report,
    ReportVersion,

    # Generation Contract
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,

    # Comparative Reports
    CompetitorAnalysis,
    ComparativeAnalysis,
    ComparativeReportOptions,
    ComparativeReportRequest,
    ComparativeReportResponse,
    IntelligentReportRequest,
    IntelligentReportResponse,

    # Validation Results
    ReportSummary,
    IntegrityResult,
    ZombieReportInfo,
    ZombieDetectionResult,
    ZombieRecoveryResult,
    ProjectReportHealth,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "ReportStatus",
    "AnalysisMethod",
    "ReportType",
    "ReportTemplateName",
    "ZombieRisk",
    "ErrorType",
    "Product",
    "Snapshot",
    "Competitor",
    "Project",
    "ReportMetadata",
    "ReportSection",
    "Report",
    "ReportVersion",
    "GenerationOptions",
    "GenerationRequest",
    "GenerationResponse",
    "CompetitorAnalysis",
    "ComparativeAnalysis",
    "ComparativeReportOptions",
    "ComparativeReportRequest",
    "ComparativeReportResponse",
    "IntelligentReportRequest",
    "IntelligentReportResponse",
    "ReportSummary",
    "IntegrityResult",
    "ZombieReportInfo",
    "ZombieDetectionResult",
    "ZombieRecoveryResult",
    "ProjectReportHealth",
]
