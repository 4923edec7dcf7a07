"""
Integration tests for the SQLAlchemy stores against a temporary SQLite file.
"""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from report_engine.models.schemas import GenerationOptions, GenerationRequest, ReportVersion
from report_engine.pipeline.orchestrator import ReportGenerator
from report_engine.services.sql_store import (
    SQLProjectStore,
    SQLReportStore,
    create_engine_from_settings,
    create_session_maker,
    init_models,
)
from report_engine.services.validation_service import ValidationService
from report_engine.utils.formatters import ReportArchive


async def _open(settings):
    engine = create_engine_from_settings(settings)
    await init_models(engine)
    session_maker = create_session_maker(engine)
    return engine, SQLProjectStore(session_maker), SQLReportStore(session_maker)


@pytest.mark.asyncio
async def test_project_round_trip(settings, ready_project):
    engine, projects, _ = await _open(settings)
    try:
        await projects.save_project(ready_project)
        loaded = await projects.get_project(ready_project.id)
    finally:
        await engine.dispose()

    assert loaded.name == "Acme Ready"
    assert loaded.product.name == "Acme CRM"
    assert [c.name for c in loaded.competitors] == ["Globex", "Initech"]
    globex = loaded.competitors[0]
    assert globex.latest_snapshot.content == "Globex homepage capture 0"
    assert len(globex.snapshots) == 2


@pytest.mark.asyncio
async def test_missing_project(settings):
    engine, projects, _ = await _open(settings)
    try:
        assert await projects.get_project("missing") is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_generation_and_zombie_recovery(settings, ready_project, make_provider):
    engine, projects, reports = await _open(settings)
    try:
        await projects.save_project(ready_project)
        generator = ReportGenerator(
            settings=settings,
            project_store=projects,
            report_store=reports,
            archive=ReportArchive(settings.reports_dir),
            llm_service=make_provider(),
        )

        response = await generator.generate_initial_report(
            GenerationRequest(project_id=ready_project.id, options=GenerationOptions())
        )
        assert response.success is True

        stored = await reports.get_report(response.report.id)
        assert stored.title == response.report.title
        assert stored.metadata.correlation_id == response.correlation_id
        versions = await reports.list_report_versions(stored.id)
        assert versions[0].content["title"] == stored.title

        # Simulate a crash between the report insert and its first version
        orphan = stored.model_copy(update={"id": "orphan-report"})
        await reports.create_report(orphan)

        validator = ValidationService(reports, projects)
        detection = await validator.detect_zombie_reports(ready_project.id)
        assert [z.report_id for z in detection.reports] == ["orphan-report"]
        assert detection.reports[0].project_name == "Acme Ready"

        recovery = await validator.recover_all_zombie_reports()
        assert recovery.recovered == 1
        assert (await validator.detect_zombie_reports()).zombies_found == 0

        health = await validator.validate_project_reports(ready_project.id)
        assert health.status == "healthy"
        assert health.total_reports == 2
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_duplicate_version_rejected(settings, ready_project, make_provider):
    engine, projects, reports = await _open(settings)
    try:
        await projects.save_project(ready_project)
        generator = ReportGenerator(
            settings=settings,
            project_store=projects,
            report_store=reports,
            llm_service=make_provider(),
        )
        response = await generator.generate_initial_report(GenerationRequest(project_id=ready_project.id))

        with pytest.raises(IntegrityError):
            await reports.create_report_version(
                ReportVersion(report_id=response.report.id, version=1, content={"content": "dup"})
            )
        assert len(await reports.list_report_versions(response.report.id)) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_generation_single_report(settings, ready_project, make_provider):
    engine, projects, reports = await _open(settings)
    try:
        await projects.save_project(ready_project)
        provider = make_provider(delay=0.1)
        generator = ReportGenerator(
            settings=settings,
            project_store=projects,
            report_store=reports,
            llm_service=provider,
        )

        responses = await asyncio.gather(
            *(generator.generate_initial_report(GenerationRequest(project_id=ready_project.id)) for _ in range(5))
        )

        assert len({r.report.id for r in responses}) == 1
        assert provider.calls == 1
        assert len(await reports.list_reports(ready_project.id)) == 1
    finally:
        await engine.dispose()
