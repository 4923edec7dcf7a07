"""
Storage interfaces for projects and reports.

The orchestrator reads projects through ProjectStore and writes reports
through ReportStore; the validator reads and repairs through the same
ReportStore. In-memory implementations back tests and single-process use,
and report_engine.services.sql_store provides the SQLAlchemy-backed ones.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from report_engine.models.schemas import (
    Project,
    Report,
    ReportStatus,
    ReportVersion,
)


class ProjectStore(ABC):
    """Abstract read-only access to projects."""

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[Project]:
        """Load a project with its product and competitors (snapshots newest first)."""
        pass


class ReportStore(ABC):
    """Abstract access to reports and their versions."""

    @abstractmethod
    async def create_report(self, report: Report) -> Report:
        """Insert a report record."""
        pass

    @abstractmethod
    async def create_report_version(self, version: ReportVersion) -> ReportVersion:
        """Insert a version for an existing report."""
        pass

    @abstractmethod
    async def get_report(self, report_id: str) -> Optional[Report]:
        pass

    @abstractmethod
    async def list_report_versions(self, report_id: str) -> list[ReportVersion]:
        """Versions of a report, ascending by version number."""
        pass

    @abstractmethod
    async def list_reports(self, project_id: Optional[str] = None) -> list[Report]:
        """Reports, newest first, optionally restricted to one project."""
        pass

    @abstractmethod
    async def find_completed_reports_without_versions(
        self,
        project_id: Optional[str] = None,
    ) -> list[Report]:
        """Reports marked completed that have zero versions."""
        pass


class InMemoryProjectStore(ProjectStore):
    """In-memory project store for testing."""

    def __init__(self, projects: Optional[list[Project]] = None):
        self._projects: dict[str, Project] = {}
        for project in projects or []:
            self.add_project(project)

    def add_project(self, project: Project) -> None:
        self._projects[project.id] = project

    async def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)


class InMemoryReportStore(ReportStore):
    """In-memory report store for testing."""

    def __init__(self):
        self._reports: dict[str, Report] = {}
        self._versions: dict[str, list[ReportVersion]] = {}
        self._lock = asyncio.Lock()

    async def create_report(self, report: Report) -> Report:
        async with self._lock:
            self._reports[report.id] = report.model_copy(deep=True)
        return report

    async def create_report_version(self, version: ReportVersion) -> ReportVersion:
        async with self._lock:
            if version.report_id not in self._reports:
                raise KeyError(f"Report {version.report_id} does not exist")
            versions = self._versions.setdefault(version.report_id, [])
            if any(v.version == version.version for v in versions):
                raise ValueError(
                    f"Version {version.version} already exists for report {version.report_id}"
                )
            versions.append(version.model_copy(deep=True))
        return version

    async def get_report(self, report_id: str) -> Optional[Report]:
        report = self._reports.get(report_id)
        return report.model_copy(deep=True) if report else None

    async def list_report_versions(self, report_id: str) -> list[ReportVersion]:
        versions = self._versions.get(report_id, [])
        return sorted((v.model_copy(deep=True) for v in versions), key=lambda v: v.version)

    async def list_reports(self, project_id: Optional[str] = None) -> list[Report]:
        reports = [
            r.model_copy(deep=True)
            for r in self._reports.values()
            if project_id is None or r.project_id == project_id
        ]
        return sorted(reports, key=lambda r: r.created_at, reverse=True)

    async def find_completed_reports_without_versions(
        self,
        project_id: Optional[str] = None,
    ) -> list[Report]:
        reports = await self.list_reports(project_id)
        return [
            r for r in reports
            if r.status == ReportStatus.COMPLETED and not self._versions.get(r.id)
        ]


__all__ = [
    "ProjectStore",
    "ReportStore",
    "InMemoryProjectStore",
    "InMemoryReportStore",
]
