"""
Report archive formatting.

Writes a human-readable markdown copy of every generated report to
``<reports_dir>/<project_id>/`` with a fixed header and footer, and verifies
the write by reading the file back.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from report_engine.models.schemas import Report
from report_engine.utils.logger import get_logger
from report_engine.utils.retry import async_retry

logger = get_logger(__name__)

FOOTER_SIGNATURE = "*Generated by CompAI Reporting System*"


def iso_timestamp(value: Optional[datetime] = None) -> str:
    """Millisecond-precision UTC ISO timestamp ending in ``Z``."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_filename(project_id: str, report_kind: str = "initial", when: Optional[datetime] = None) -> str:
    """``<kind>-report-<project>-<timestamp>.md`` with ``:`` and ``.`` in the timestamp replaced by ``-``."""
    stamp = iso_timestamp(when).replace(":", "-").replace(".", "-")
    return f"{report_kind}-report-{project_id}-{stamp}.md"


def format_report_file(report: Report, correlation_id: str) -> str:
    """Render the archived markdown document for a report."""
    metadata = report.metadata
    lines = [
        f"# {report.title}",
        "",
        f"**Generated:** {iso_timestamp(metadata.generated_at)}",
        f"**Project ID:** {report.project_id}",
        f"**Report ID:** {report.id}",
        f"**Data Completeness:** {metadata.data_completeness_score}%",
        f"**Analysis Method:** {metadata.analysis_method}",
        "",
        "---",
        "",
        report.content,
        "",
        "---",
        "",
        FOOTER_SIGNATURE,
        f"*Correlation ID: {correlation_id}*",
        "",
    ]
    return "\n".join(lines)


class ReportArchive:
    """Filesystem archive of generated reports."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def project_dir(self, project_id: str) -> Path:
        return self.output_dir / project_id

    async def write_report(
        self,
        report: Report,
        correlation_id: str,
        report_kind: str = "initial",
    ) -> Path:
        """
        Write the report document and verify it by reading it back.

        Raises:
            OSError: If the file cannot be written or reads back empty.
        """
        file_path = self.project_dir(report.project_id) / build_filename(
            report.project_id, report_kind
        )
        document = format_report_file(report, correlation_id)

        await self._write(file_path, document)

        logger.info(
            "Report file saved",
            report_id=report.id,
            file_path=str(file_path),
            size=len(document),
            correlation_id=correlation_id,
        )
        return file_path

    @async_retry(max_attempts=3, backoff_factor=2.0, initial_wait=0.1, exceptions=(OSError,))
    async def _write(self, file_path: Path, document: str) -> None:
        await asyncio.to_thread(self._write_and_verify, file_path, document)

    @staticmethod
    def _write_and_verify(file_path: Path, document: str) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(document, encoding="utf-8")
        if not file_path.read_text(encoding="utf-8"):
            raise OSError(f"Report file is empty after write: {file_path}")


__all__ = [
    "FOOTER_SIGNATURE",
    "ReportArchive",
    "build_filename",
    "format_report_file",
    "iso_timestamp",
]
