import json
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from report_engine.models.schemas import (
    Competitor,
    GenerationRequest,
    Product,
    Report,
    ReportMetadata,
    ReportStatus,
    ReportVersion,
    Snapshot,
)


def _metadata(**kwargs):
    values = {
        "project_id": "p1",
        "data_completeness_score": 100,
        "analysis_method": "ai_powered",
        "report_type": "initial_competitive",
        "correlation_id": "COR-1-abc",
    }
    values.update(kwargs)
    return ReportMetadata(**values)


def test_competitor_snapshots_sorted_newest_first():
    now = datetime.utcnow()
    competitor = Competitor(
        name="Globex",
        snapshots=[
            Snapshot(content="old", created_at=now - timedelta(days=2)),
            Snapshot(content="new", created_at=now),
            Snapshot(content="mid", created_at=now - timedelta(days=1)),
        ],
    )

    assert [s.content for s in competitor.snapshots] == ["new", "mid", "old"]
    assert competitor.latest_snapshot.content == "new"
    assert competitor.is_data_ready is True


def test_competitor_without_snapshots():
    competitor = Competitor(name="Initech")

    assert competitor.latest_snapshot is None
    assert competitor.is_data_ready is False


def test_product_requires_name():
    with pytest.raises(ValidationError):
        Product(name="   ")


def test_completeness_score_bounds():
    with pytest.raises(ValidationError):
        _metadata(data_completeness_score=101)
    with pytest.raises(ValidationError):
        _metadata(data_completeness_score=-1)


def test_report_defaults_and_enum_values():
    report = Report(project_id="p1", title="T", metadata=_metadata())

    assert report.status == ReportStatus.NOT_STARTED
    assert report.status == "not_started"
    assert report.format == "markdown"
    assert len(report.id) == 32


def test_report_json_timestamps():
    report = Report(
        project_id="p1",
        title="T",
        metadata=_metadata(),
        created_at=datetime(2024, 5, 1, 12, 0, 0),
    )

    data = json.loads(report.to_json())
    assert data["created_at"] == "2024-05-01T12:00:00Z"
    assert data["updated_at"] is None
    assert isinstance(report.to_dict()["created_at"], datetime)
    assert Report.from_json(report.to_json()).id == report.id


def test_report_title_length():
    with pytest.raises(ValidationError):
        Report(project_id="p1", title="x" * 301, metadata=_metadata())


def test_report_version_content():
    assert ReportVersion(report_id="r1", content={"content": "x"}).has_content is True
    assert ReportVersion(report_id="r1", content={}).has_content is False
    assert ReportVersion(report_id="r1").has_content is False
    with pytest.raises(ValidationError):
        ReportVersion(report_id="r1", version=0)


def test_generation_request_defaults():
    request = GenerationRequest(project_id="p1")

    assert request.options.fallback_to_partial_data is False
    assert request.options.template == "comprehensive"
    assert request.task_id is None
