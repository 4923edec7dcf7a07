"""
Services package for the Competitive Report Engine.

Services:
    - ClaudeService: Report text completion using Anthropic Claude
    - ValidationService: Report integrity checks and zombie recovery

Stores:
    - InMemoryProjectStore / InMemoryReportStore: Process-local stores
    - SQLProjectStore / SQLReportStore: SQLAlchemy-backed stores
"""

from report_engine.services.llm_service import (
    ClaudeService,
    ClaudeServiceError,
    CompletionProvider,
    MaxRetriesExceededError,
    MissingCredentialsError,
    TokenUsage,
)
from report_engine.services.report_store import (
    ProjectStore,
    ReportStore,
    InMemoryProjectStore,
    InMemoryReportStore,
)
from report_engine.services.sql_store import SQLProjectStore, SQLReportStore
from report_engine.services.validation_service import ValidationService

__all__ = [
    # LLM
    "ClaudeService",
    "ClaudeServiceError",
    "CompletionProvider",
    "MaxRetriesExceededError",
    "MissingCredentialsError",
    "TokenUsage",
    # Stores
    "ProjectStore",
    "ReportStore",
    "InMemoryProjectStore",
    "InMemoryReportStore",
    "SQLProjectStore",
    "SQLReportStore",
    # Validation
    "ValidationService",
]
