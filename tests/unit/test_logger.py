import pytest

from report_engine.utils.logger import (
    LogContext,
    generate_correlation_id,
    generate_project_correlation_id,
    generate_report_correlation_id,
    get_correlation_id_type,
    get_logger,
    get_timestamp_from_correlation_id,
    is_valid_correlation_id,
    track_business_event,
    track_error_with_correlation,
)


def test_get_logger():
    logger = get_logger("test_module")
    assert logger is not None
    # Test logging doesn't crash
    logger.info("test message", key="value")


def test_log_context():
    logger = get_logger("test_module")
    with LogContext(correlation_id="COR-1-abc"):
        logger.info("with context")
    logger.info("without context")


def test_generate_correlation_id():
    correlation_id = generate_correlation_id()

    prefix, timestamp, suffix = correlation_id.split("-")
    assert prefix == "COR"
    assert timestamp.isdigit()
    assert len(suffix) == 9
    assert is_valid_correlation_id(correlation_id)


def test_correlation_ids_are_unique():
    assert len({generate_correlation_id() for _ in range(200)}) == 200


def test_prefixed_correlation_id():
    correlation_id = generate_correlation_id("ANL")

    assert correlation_id.startswith("ANL-")
    assert len(correlation_id.rsplit("-", 1)[1]) == 6
    assert get_correlation_id_type(correlation_id) == "ANL"


def test_scoped_correlation_ids():
    project_id = generate_project_correlation_id("p42")
    report_id = generate_report_correlation_id("initial")

    assert project_id.startswith("PRJ-p42-")
    assert report_id.startswith("RPT-INITIAL-")
    # Scoped ids carry an extra segment
    assert not is_valid_correlation_id(project_id)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("COR-1700000000000-abc123def", True),
        ("ERR-1700000000000-x1", True),
        ("XYZ-1700000000000-abc", False),
        ("COR-notanumber-abc", False),
        ("COR-1700000000000-", False),
        ("COR-1700000000000", False),
    ],
)
def test_is_valid_correlation_id(value, expected):
    assert is_valid_correlation_id(value) is expected


def test_timestamp_from_correlation_id():
    assert get_timestamp_from_correlation_id("COR-1700000000000-abc") == 1700000000000
    assert get_timestamp_from_correlation_id("garbage") is None
    assert get_correlation_id_type("") is None


def test_event_helpers():
    track_business_event("initial_report_generated", project_id="p1", report_id="r1")
    track_error_with_correlation(RuntimeError("boom"), "COR-1-abc", "report_generation", project_id="p1")
