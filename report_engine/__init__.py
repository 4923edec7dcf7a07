"""
Competitive Report Engine.

Generates initial and comparative competitive-analysis reports for
projects using LangGraph and Claude, and keeps stored reports healthy by
detecting and repairing completed reports that lost their content.
"""

__version__ = "1.0.0"
__author__ = "Competitive Report Engine Team"

# Lazy imports to avoid circular dependencies
def get_generator():
    """Get the ReportGenerator class (lazy import)."""
    from report_engine.pipeline.orchestrator import ReportGenerator
    return ReportGenerator


def get_validation_service():
    """Get the ValidationService class (lazy import)."""
    from report_engine.services.validation_service import ValidationService
    return ValidationService

__all__ = ["get_generator", "get_validation_service", "__version__"]
