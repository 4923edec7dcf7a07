"""Pipeline module for the Competitive Report Engine."""

from report_engine.pipeline.orchestrator import (
    ReportGenerator,
    ReportGenerationError,
    ValidationError,
    DependencyError,
    AnalysisError,
    AnalysisTimeoutError,
    PersistenceError,
    GenerationStateDict,
    calculate_data_completeness,
    create_report_generator,
)

__all__ = [
    "ReportGenerator",
    "ReportGenerationError",
    "ValidationError",
    "DependencyError",
    "AnalysisError",
    "AnalysisTimeoutError",
    "PersistenceError",
    "GenerationStateDict",
    "calculate_data_completeness",
    "create_report_generator",
]
