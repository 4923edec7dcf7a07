"""
Report generation orchestrator using LangGraph.

Coordinates initial report generation for a project: fetches the project,
scores data completeness, decides between AI-powered and rule-based content,
enforces analysis and overall timeouts, and hands the finished report to the
report store and file archive.

Features:
    - Stateful execution with LangGraph StateGraph
    - Conditional edges for the project-only, fallback and analysis branches
    - Per-project deduplication of concurrent requests
    - Time-boxed AI analysis with a circuit breaker around the provider
    - Non-fatal persistence with correlation-id error tracking
    - Comparative and intelligent reports from a completed analysis
"""

import asyncio
import operator
import time
from datetime import datetime
from functools import partial, wraps
from typing import Annotated, Any, Callable, Literal, Optional, TypedDict

from langgraph.graph import END, StateGraph
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from report_engine.config.settings import Settings, get_settings
from report_engine.models.schemas import (
    AnalysisMethod,
    ComparativeReportRequest,
    ComparativeReportResponse,
    Competitor,
    ErrorType,
    GenerationRequest,
    GenerationResponse,
    IntelligentReportRequest,
    IntelligentReportResponse,
    Project,
    Report,
    ReportMetadata,
    ReportStatus,
    ReportType,
    ReportVersion,
    new_id,
)
from report_engine.pipeline import templates
from report_engine.services.llm_service import ClaudeService, CompletionProvider
from report_engine.services.report_store import (
    InMemoryProjectStore,
    InMemoryReportStore,
    ProjectStore,
    ReportStore,
)
from report_engine.utils.formatters import ReportArchive
from report_engine.utils.logger import (
    LogContext,
    generate_correlation_id,
    get_logger,
    track_business_event,
    track_error_with_correlation,
)
from report_engine.utils.retry import CircuitBreaker, ErrorHandler, NetworkError

logger = get_logger(__name__)


# =============================================================================
# Constants and Configuration
# =============================================================================

PROJECT_FETCH_TIMEOUT_SECONDS = 30

INITIAL_REPORT_DESCRIPTION = "Initial competitive analysis report generated automatically"

# Rough estimate used for comparative report accounting
CHARS_PER_TOKEN = 4
COST_PER_TOKEN = 0.00002

FALLBACK_HINT = "Enable fallback_to_partial_data to proceed with degraded output."


# =============================================================================
# Generation State Definition (TypedDict for LangGraph)
# =============================================================================

class GenerationStateDict(TypedDict, total=False):
    """
    TypedDict-based generation state for LangGraph.

    Holds model instances directly; the graph runs without a checkpointer.
    """
    # Identifiers
    correlation_id: str
    task_id: str
    project_id: str

    # Input
    fallback_enabled: bool
    project: Project | None

    # Step outputs
    data_completeness_score: int
    ready_competitors: list[Competitor]
    ai_available: bool
    analysis_content: str
    analysis_method: str
    report: Report | None
    message: str

    # Warnings (accumulated)
    warnings: Annotated[list[str], operator.add]

    # Metadata
    step_timings: dict


# =============================================================================
# Error Classes
# =============================================================================

class ReportGenerationError(Exception):
    """Base exception for report generation errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_ERROR,
        correlation_id: str | None = None,
        details: dict | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.correlation_id = correlation_id
        self.details = details or {}
        self.recoverable = recoverable


class ValidationError(ReportGenerationError):
    """Missing or unusable input."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_type=ErrorType.VALIDATION_ERROR,
            details=details,
            recoverable=False,
        )


class DependencyError(ReportGenerationError):
    """AI provider could not be initialized or did not respond."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_type=ErrorType.DEPENDENCY_ERROR,
            details=details,
            recoverable=True,
        )


class AnalysisError(ReportGenerationError):
    """AI analysis call failed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_type=ErrorType.ANALYSIS_ERROR,
            details=details,
            recoverable=True,
        )


class AnalysisTimeoutError(ReportGenerationError):
    """A time-boxed step exceeded its budget."""

    def __init__(self, step: str, timeout_seconds: float, hint: str = ""):
        message = f"Step '{step}' timed out after {timeout_seconds:g} seconds"
        super().__init__(
            message=f"{message}. {hint}" if hint else message,
            error_type=ErrorType.TIMEOUT_ERROR,
            details={"step": step, "timeout": timeout_seconds},
            recoverable=True,
        )


class PersistenceError(ReportGenerationError):
    """Report store or file archive write failed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_type=ErrorType.PERSISTENCE_ERROR,
            details=details,
            recoverable=True,
        )


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def with_timeout(timeout_seconds: float):
    """Decorator to add timeout to async node functions."""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=timeout_seconds
                )
            except asyncio.TimeoutError:
                raise AnalysisTimeoutError(func.__name__.strip("_"), timeout_seconds)
        return wrapper
    return decorator


def with_retry(max_attempts: int = 3, min_wait: float = 0.5, max_wait: float = 5):
    """Decorator to retry transient store failures."""
    def decorator(func: Callable):
        @wraps(func)
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type((NetworkError, ConnectionError)),
            reraise=True,
        )
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)
        return wrapper
    return decorator


def track_timing(func: Callable):
    """Decorator to track node execution timing."""
    @wraps(func)
    async def wrapper(self, state: GenerationStateDict) -> dict[str, Any]:
        start_time = time.time()
        node_name = func.__name__.strip("_").replace("_node", "")

        logger.debug(f"Starting node: {node_name}", correlation_id=state.get("correlation_id"))

        try:
            result = await func(self, state)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.warning(
                f"Node failed: {node_name}",
                correlation_id=state.get("correlation_id"),
                duration_ms=duration_ms,
                error=str(e),
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        step_timings = state.get("step_timings", {}).copy()
        step_timings[node_name] = duration_ms
        result["step_timings"] = step_timings

        logger.info(
            f"Completed node: {node_name}",
            correlation_id=state.get("correlation_id"),
            duration_ms=duration_ms,
        )
        return result

    return wrapper


# =============================================================================
# Main Generator Class
# =============================================================================

class ReportGenerator:
    """
    LangGraph-based generator for initial and comparative reports.

    At most one initial-report generation runs per project id at a time;
    concurrent callers for the same project await the same execution.
    Terminal failures are returned as GenerationResponse(success=False),
    never raised.

    Example:
        >>> generator = ReportGenerator(project_store=store)
        >>> response = await generator.generate_initial_report(
        ...     GenerationRequest(project_id="p1")
        ... )
        >>> print(response.report.title)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        project_store: Optional[ProjectStore] = None,
        report_store: Optional[ReportStore] = None,
        archive: Optional[ReportArchive] = None,
        llm_service: Optional[CompletionProvider] = None,
        llm_factory: Optional[Callable[[], CompletionProvider]] = None,
    ):
        """
        Initialize the generator.

        Args:
            settings: Application settings (uses defaults if not provided)
            project_store: Source of projects, competitors and snapshots
            report_store: Destination for reports and report versions
            archive: File archive (defaults to settings.reports_dir)
            llm_service: Pre-built completion provider
            llm_factory: Builds the completion provider on first use;
                a raising factory means the AI service is unavailable
        """
        self.settings = settings or get_settings()
        self.project_store = project_store or InMemoryProjectStore()
        self.report_store = report_store or InMemoryReportStore()
        self.archive = archive or ReportArchive(self.settings.reports_dir)

        self._llm_service = llm_service
        self._llm_factory = llm_factory or partial(ClaudeService, self.settings)
        self._breaker = CircuitBreaker(
            failure_threshold=self.settings.ai_failure_threshold,
            recovery_timeout=self.settings.ai_recovery_seconds,
            name="ai_completion",
        )

        self._active_tasks: dict[str, asyncio.Task] = {}
        self._tasks_lock = asyncio.Lock()

        self._graph = self._build_graph()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Release the completion provider if it holds a client."""
        close = getattr(self._llm_service, "close", None)
        if close is not None:
            await close()

    def _get_llm_service(self) -> CompletionProvider:
        """Return the completion provider, building it on first use."""
        if self._llm_service is None:
            self._llm_service = self._llm_factory()
        return self._llm_service

    def _build_graph(self):
        """
        Build the LangGraph state machine with all nodes and edges.

        Graph structure:
            fetch_project
                 |
                 +--(no competitors)--> build_project_only_report --+
                 |                                                  |
                 v                                                  |
            assess_data -> initialize_ai                            |
                              |                                     |
                 +------------+---------------+                     |
                 |                            |                     |
                 v                            v                     |
          analyze_competitors      build_fallback_report            |
                 |                            |                     |
                 v                            |                     |
          build_analysis_report               |                     |
                 |                            |                     |
                 +-------------> persist_report <-------------------+
                                      |
                                      v
                                     END
        """
        graph = StateGraph(GenerationStateDict)

        graph.add_node("fetch_project", self._fetch_project_node)
        graph.add_node("assess_data", self._assess_data_node)
        graph.add_node("initialize_ai", self._initialize_ai_node)
        graph.add_node("analyze_competitors", self._analyze_competitors_node)
        graph.add_node("build_project_only_report", self._build_project_only_report_node)
        graph.add_node("build_fallback_report", self._build_fallback_report_node)
        graph.add_node("build_analysis_report", self._build_analysis_report_node)
        graph.add_node("persist_report", self._persist_report_node)

        graph.set_entry_point("fetch_project")

        graph.add_conditional_edges(
            "fetch_project",
            self._route_after_fetch,
            {
                "project_only": "build_project_only_report",
                "assess": "assess_data",
            }
        )
        graph.add_edge("assess_data", "initialize_ai")
        graph.add_conditional_edges(
            "initialize_ai",
            self._route_after_ai_init,
            {
                "analyze": "analyze_competitors",
                "fallback": "build_fallback_report",
            }
        )
        graph.add_edge("analyze_competitors", "build_analysis_report")

        graph.add_edge("build_project_only_report", "persist_report")
        graph.add_edge("build_fallback_report", "persist_report")
        graph.add_edge("build_analysis_report", "persist_report")
        graph.add_edge("persist_report", END)

        return graph.compile()

    def _route_after_fetch(self, state: GenerationStateDict) -> Literal["project_only", "assess"]:
        """Projects without competitors always get a project-only report."""
        project = state.get("project")
        if project is None or not project.competitors:
            return "project_only"
        return "assess"

    def _route_after_ai_init(self, state: GenerationStateDict) -> Literal["analyze", "fallback"]:
        return "analyze" if state.get("ai_available") else "fallback"

    # =========================================================================
    # Node Implementations
    # =========================================================================

    @track_timing
    @with_timeout(PROJECT_FETCH_TIMEOUT_SECONDS)
    async def _fetch_project_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 1: Load the project with its competitors and snapshots."""
        project_id = state["project_id"]
        project = await self._load_project(project_id)

        if project is None:
            raise ValidationError(
                f"Project not found: {project_id}",
                details={"project_id": project_id},
            )

        logger.info(
            "Project loaded",
            product_name=project.product.name,
            competitor_count=len(project.competitors),
        )
        return {"project": project}

    @with_retry()
    async def _load_project(self, project_id: str) -> Optional[Project]:
        return await self.project_store.get_project(project_id)

    @track_timing
    async def _assess_data_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """
        Node 2: Score data completeness.

        The score is the percentage of competitors with at least one snapshot.
        Below the minimum it is terminal unless fallback is enabled.
        """
        project = state["project"]
        ready = [c for c in project.competitors if c.is_data_ready]
        ratio = 100 * len(ready) / len(project.competitors)
        score = calculate_data_completeness(len(ready), len(project.competitors))

        # Gate on the unrounded ratio; the rounded score is only for display
        warnings: list[str] = []
        if ratio < self.settings.min_data_completeness:
            if not state.get("fallback_enabled"):
                raise ValidationError(
                    f"Insufficient data for initial report generation ({ratio:.4g}% complete). "
                    f"{FALLBACK_HINT}",
                    details={
                        "data_completeness_score": score,
                        "ready_competitors": len(ready),
                        "total_competitors": len(project.competitors),
                    },
                )
            warnings.append(f"Proceeding with partial data ({score}% complete)")
            logger.warning(
                "Proceeding with partial data",
                data_completeness_score=score,
                ready_competitors=len(ready),
            )

        return {
            "data_completeness_score": score,
            "ready_competitors": ready,
            "warnings": warnings,
        }

    @track_timing
    async def _initialize_ai_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 3: Make sure the completion provider can be constructed."""
        try:
            self._get_llm_service()
        except Exception as e:
            if not state.get("fallback_enabled"):
                raise DependencyError(
                    f"AI service initialization failed: {e}. {FALLBACK_HINT}",
                    details={"cause": type(e).__name__},
                ) from e
            logger.warning("AI service unavailable, using fallback report", error=str(e))
            return {
                "ai_available": False,
                "warnings": [f"AI service unavailable: {e}"],
            }

        return {"ai_available": True}

    @track_timing
    async def _analyze_competitors_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """
        Node 4: Run the time-boxed AI analysis.

        Timeouts and provider failures are terminal without fallback; with
        fallback they are replaced by deterministic template content.
        """
        project = state["project"]
        ready = state.get("ready_competitors", [])
        fallback_enabled = state.get("fallback_enabled", False)

        if not ready:
            logger.warning("No competitor data captured, skipping AI analysis")
            return self._rule_based_analysis(project, ready, "No competitor snapshots to analyze")

        prompt = templates.format_competitive_analysis_prompt(
            project.product,
            ready,
            excerpt_chars=self.settings.snapshot_excerpt_chars,
        )
        timeout = self.settings.ai_analysis_timeout_seconds

        try:
            content = await asyncio.wait_for(
                self._breaker.call(self._get_llm_service().complete, prompt),
                timeout=timeout,
            )
            if not content or not content.strip():
                raise AnalysisError("AI analysis returned empty content")
        except asyncio.TimeoutError:
            if not fallback_enabled:
                raise AnalysisTimeoutError(
                    "analyze_competitors",
                    timeout,
                    hint="AI analysis did not complete. " + FALLBACK_HINT,
                )
            logger.warning("AI analysis timed out, using template content", timeout_seconds=timeout)
            return self._rule_based_analysis(project, ready, f"AI analysis timed out after {timeout:g}s")
        except Exception as e:
            if not fallback_enabled:
                raise AnalysisError(
                    f"Failed to generate competitive analysis: {e}. {FALLBACK_HINT}",
                    details={"cause": type(e).__name__},
                ) from e
            logger.warning("AI analysis failed, using template content", error=str(e))
            return self._rule_based_analysis(project, ready, f"AI analysis failed: {e}")

        logger.info("AI analysis completed", content_length=len(content))
        return {
            "analysis_content": content,
            "analysis_method": AnalysisMethod.AI_POWERED.value,
        }

    def _rule_based_analysis(
        self,
        project: Project,
        ready: list[Competitor],
        reason: str,
    ) -> dict[str, Any]:
        return {
            "analysis_content": templates.render_rule_based_analysis(project.product, ready),
            "analysis_method": AnalysisMethod.RULE_BASED.value,
            "warnings": [reason],
        }

    @track_timing
    async def _build_project_only_report_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 5a: Report for a project with no competitors."""
        project = state["project"]
        title, content = templates.render_project_only(project.product)

        report = self._new_report(
            state,
            title=title,
            content=content,
            competitor_count=0,
            score=100,
            method=AnalysisMethod.RULE_BASED,
            report_type=ReportType.PROJECT_ONLY,
        )
        return {
            "report": report,
            "message": "Project-only report generated (no competitors available)",
        }

    @track_timing
    async def _build_fallback_report_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 5b: Overview produced when the AI service is unavailable."""
        project = state["project"]
        title, content = templates.render_fallback_overview(
            project.product, len(project.competitors)
        )

        report = self._new_report(
            state,
            title=title,
            content=content,
            competitor_count=len(project.competitors),
            score=0,
            method=AnalysisMethod.RULE_BASED,
            report_type=ReportType.FALLBACK_OVERVIEW,
        )
        return {
            "report": report,
            "message": "Fallback report generated without AI analysis",
        }

    @track_timing
    async def _build_analysis_report_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 5c: Initial competitive analysis report."""
        project = state["project"]

        report = self._new_report(
            state,
            title=templates.report_title(templates.INITIAL_ANALYSIS_TITLE, project.product.name),
            content=state["analysis_content"],
            competitor_count=len(state.get("ready_competitors", [])),
            score=state["data_completeness_score"],
            method=AnalysisMethod(state["analysis_method"]),
            report_type=ReportType.INITIAL_COMPETITIVE,
        )
        return {
            "report": report,
            "message": "Initial report generated successfully",
        }

    @track_timing
    async def _persist_report_node(self, state: GenerationStateDict) -> dict[str, Any]:
        """Node 6: Hand the report to the store and archive."""
        await self._persist_report(state["report"], state["correlation_id"])
        return {}

    def _new_report(
        self,
        state: GenerationStateDict,
        title: str,
        content: str,
        competitor_count: int,
        score: int,
        method: AnalysisMethod,
        report_type: ReportType,
    ) -> Report:
        project_id = state["project_id"]
        return Report(
            project_id=project_id,
            title=title,
            description=INITIAL_REPORT_DESCRIPTION,
            content=content,
            status=ReportStatus.COMPLETED,
            metadata=ReportMetadata(
                project_id=project_id,
                competitor_count=competitor_count,
                data_completeness_score=score,
                analysis_method=method,
                report_type=report_type,
                correlation_id=state["correlation_id"],
            ),
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _persist_report(
        self,
        report: Report,
        correlation_id: str,
        report_kind: str = "initial",
    ) -> None:
        """
        Write the report and its first version, then archive it to disk.

        Failures are logged and tracked by correlation id; they never fail
        the generation.
        """
        try:
            await self.report_store.create_report(report)
            await self.report_store.create_report_version(
                ReportVersion(
                    report_id=report.id,
                    version=1,
                    content=version_payload(report),
                )
            )
            logger.info("Report persisted to database", report_id=report.id)
        except Exception as e:
            error = PersistenceError(
                f"Failed to persist report to database: {e}",
                details={"report_id": report.id, "cause": type(e).__name__},
            )
            error.correlation_id = correlation_id
            logger.error(error.message, report_id=report.id)
            track_error_with_correlation(
                error,
                correlation_id,
                "report_database_persistence_failed",
                project_id=report.project_id,
                report_id=report.id,
            )

        try:
            await self.archive.write_report(report, correlation_id, report_kind)
        except Exception as e:
            error = PersistenceError(
                f"Failed to save report file: {e}",
                details={"report_id": report.id},
            )
            error.correlation_id = correlation_id
            logger.error(error.message, report_id=report.id)
            track_error_with_correlation(
                error,
                correlation_id,
                "report_file_persistence_failed",
                project_id=report.project_id,
                report_id=report.id,
            )

    # =========================================================================
    # Public API
    # =========================================================================

    async def generate_initial_report(self, request: GenerationRequest) -> GenerationResponse:
        """
        Generate the initial report for a project.

        Concurrent calls for the same project attach to the in-flight
        execution and receive its response. Finished executions (including
        failed ones) are forgotten, so a later call starts fresh.
        """
        project_id = request.project_id
        if not project_id:
            return self._failure_response(
                request,
                ValidationError("Project ID is required"),
                correlation_id=generate_correlation_id(),
                start_time=time.time(),
            )

        async with self._tasks_lock:
            task = self._active_tasks.get(project_id)
            if task is None or task.done():
                task = asyncio.ensure_future(self._execute_initial_report(request))
                self._active_tasks[project_id] = task
                task.add_done_callback(partial(self._release_task, project_id))
            else:
                logger.warning(
                    "Report generation already in progress, attaching to existing task",
                    project_id=project_id,
                )

        return await asyncio.shield(task)

    def _release_task(self, project_id: str, task: asyncio.Task) -> None:
        if self._active_tasks.get(project_id) is task:
            del self._active_tasks[project_id]

    def get_active_project_ids(self) -> list[str]:
        """Project ids with an initial-report generation in flight."""
        return list(self._active_tasks)

    async def _execute_initial_report(self, request: GenerationRequest) -> GenerationResponse:
        start_time = time.time()
        correlation_id = generate_correlation_id()
        task_id = request.task_id or new_id()

        initial_state: GenerationStateDict = {
            "correlation_id": correlation_id,
            "task_id": task_id,
            "project_id": request.project_id,
            "fallback_enabled": request.options.fallback_to_partial_data,
            "project": None,
            "report": None,
            "warnings": [],
            "step_timings": {},
        }

        with LogContext(correlation_id=correlation_id, project_id=request.project_id, task_id=task_id):
            logger.info(
                "Starting initial report generation",
                fallback_enabled=request.options.fallback_to_partial_data,
            )

            try:
                final_state = await asyncio.wait_for(
                    self._graph.ainvoke(initial_state),
                    timeout=self.settings.generation_timeout_seconds,
                )
            except ReportGenerationError as e:
                return self._failure_response(request, e, correlation_id, start_time, task_id)
            except asyncio.TimeoutError:
                error = AnalysisTimeoutError(
                    "generate_initial_report",
                    self.settings.generation_timeout_seconds,
                )
                return self._failure_response(request, error, correlation_id, start_time, task_id)
            except Exception as e:
                logger.exception("Unexpected error during report generation")
                error = ReportGenerationError(
                    f"Unexpected report generation error: {e}",
                    error_type=ErrorType(ErrorHandler.categorize_error(e)),
                    correlation_id=correlation_id,
                )
                return self._failure_response(request, error, correlation_id, start_time, task_id)

            report: Report = final_state["report"]
            processing_time_ms = int((time.time() - start_time) * 1000)

            logger.info(
                "Initial report generated",
                report_id=report.id,
                report_type=report.metadata.report_type,
                analysis_method=report.metadata.analysis_method,
                data_completeness_score=report.metadata.data_completeness_score,
                processing_time_ms=processing_time_ms,
                warnings=final_state.get("warnings", []),
                step_timings=final_state.get("step_timings", {}),
            )
            track_business_event(
                "initial_report_generated",
                correlation_id=correlation_id,
                project_id=request.project_id,
                report_id=report.id,
                processing_time_ms=processing_time_ms,
                data_completeness_score=report.metadata.data_completeness_score,
                analysis_method=report.metadata.analysis_method,
            )

            return GenerationResponse(
                success=True,
                task_id=task_id,
                project_id=request.project_id,
                report=report,
                status=ReportStatus.COMPLETED,
                processing_time_ms=processing_time_ms,
                message=final_state.get("message"),
                correlation_id=correlation_id,
            )

    def _failure_response(
        self,
        request: GenerationRequest,
        error: ReportGenerationError,
        correlation_id: str,
        start_time: float,
        task_id: Optional[str] = None,
    ) -> GenerationResponse:
        error.correlation_id = error.correlation_id or correlation_id
        logger.error(
            "Initial report generation failed",
            error=error.message,
            error_type=error.error_type,
            details=error.details,
        )
        track_error_with_correlation(
            error,
            correlation_id,
            "initial_report_generation_failed",
            project_id=request.project_id,
            error_type=str(ErrorType(error.error_type).value),
        )
        return GenerationResponse(
            success=False,
            task_id=task_id or request.task_id or new_id(),
            project_id=request.project_id,
            status=ReportStatus.FAILED,
            processing_time_ms=int((time.time() - start_time) * 1000),
            error=error.message,
            error_type=error.error_type,
            correlation_id=correlation_id,
        )

    # =========================================================================
    # Comparative Reports
    # =========================================================================

    async def generate_comparative_report(
        self,
        request: ComparativeReportRequest,
    ) -> ComparativeReportResponse:
        """Render, persist and archive a templated report from a completed analysis."""
        start_time = time.time()
        correlation_id = generate_correlation_id()
        task_id = request.task_id or new_id()
        template_name = request.options.template

        with LogContext(correlation_id=correlation_id, project_id=request.project_id, task_id=task_id):
            logger.info(
                "Starting comparative report generation",
                analysis_id=request.analysis.id,
                template=template_name,
            )

            try:
                try:
                    template = templates.get_report_template(template_name)
                except KeyError as e:
                    raise ValidationError(
                        f"Template not found: {template_name}",
                        details={"available": templates.list_report_templates()},
                    ) from e

                context = templates.build_report_context(request.analysis, request.product)
                sections = templates.render_sections(template, context)

                report = Report(
                    project_id=request.project_id,
                    title=templates.report_title(
                        f"Comparative Analysis Report: {{product_name}} - {template.display_name}",
                        request.product.name,
                    ),
                    description=(
                        f"{template.description} - Analysis of {request.product.name} "
                        f"against {context['competitor_count']} competitors"
                    ),
                    content="\n\n".join(section.content for section in sections),
                    status=ReportStatus.COMPLETED,
                    sections=sections,
                    metadata=ReportMetadata(
                        project_id=request.project_id,
                        competitor_count=context["competitor_count"],
                        data_completeness_score=100,
                        analysis_method=request.analysis.analysis_method,
                        report_type=ReportType.COMPARATIVE,
                        correlation_id=correlation_id,
                        template=template.name,
                        confidence_score=request.analysis.confidence_score,
                    ),
                )

                await self._persist_report(report, correlation_id, report_kind="comparative")

            except ReportGenerationError as e:
                return self._comparative_failure(request, e, correlation_id, start_time, task_id)
            except Exception as e:
                logger.exception("Unexpected error during comparative report generation")
                error = ReportGenerationError(
                    f"Failed to generate comparative report: {e}",
                    error_type=ErrorType(ErrorHandler.categorize_error(e)),
                    correlation_id=correlation_id,
                )
                return self._comparative_failure(request, error, correlation_id, start_time, task_id)

            processing_time_ms = int((time.time() - start_time) * 1000)
            tokens_used = -(-sum(len(s.content) for s in sections) // CHARS_PER_TOKEN)

            logger.info(
                "Comparative report generated",
                report_id=report.id,
                sections=len(sections),
                tokens_used=tokens_used,
            )
            track_business_event(
                "comparative_report_generated",
                correlation_id=correlation_id,
                project_id=request.project_id,
                processing_time_ms=processing_time_ms,
                sections_count=len(sections),
            )

            return ComparativeReportResponse(
                success=True,
                task_id=task_id,
                project_id=request.project_id,
                report=report,
                processing_time_ms=processing_time_ms,
                tokens_used=tokens_used,
                cost=tokens_used * COST_PER_TOKEN,
                correlation_id=correlation_id,
            )

    def _comparative_failure(
        self,
        request: ComparativeReportRequest,
        error: ReportGenerationError,
        correlation_id: str,
        start_time: float,
        task_id: str,
    ) -> ComparativeReportResponse:
        error.correlation_id = error.correlation_id or correlation_id
        logger.error("Comparative report generation failed", error=error.message)
        track_error_with_correlation(
            error,
            correlation_id,
            "comparative_report_generation_failed",
            project_id=request.project_id,
        )
        return ComparativeReportResponse(
            success=False,
            task_id=task_id,
            project_id=request.project_id,
            processing_time_ms=int((time.time() - start_time) * 1000),
            error=error.message,
            error_type=error.error_type,
            correlation_id=correlation_id,
        )

    async def generate_intelligent_report(
        self,
        request: IntelligentReportRequest,
    ) -> IntelligentReportResponse:
        """
        Comparative report plus actionable insights and optional AI enhancement.

        Enhancement is time-boxed like the initial analysis; its failure
        leaves enhanced_content empty and adds a warning.
        """
        base = await self.generate_comparative_report(request)
        warnings = list(base.warnings)
        enhanced_content = ""

        if base.success and request.enhance_with_ai:
            with LogContext(correlation_id=base.correlation_id, project_id=request.project_id):
                prompt = templates.format_enhanced_report_prompt(
                    request.options.template,
                    include_charts=request.options.include_charts,
                )
                try:
                    enhanced_content = await asyncio.wait_for(
                        self._breaker.call(self._get_llm_service().complete, prompt),
                        timeout=self.settings.ai_analysis_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    logger.warning("AI enhancement timed out")
                    warnings.append(
                        f"AI enhancement timed out after "
                        f"{self.settings.ai_analysis_timeout_seconds:g}s. Using template-based report."
                    )
                except Exception as e:
                    logger.warning("AI enhancement failed", error=str(e))
                    warnings.append(f"AI enhancement failed: {e}. Using template-based report.")

        analysis = request.analysis
        actionable_insights = (
            list(analysis.immediate_recommendations)
            + analysis.short_term_recommendations[:3]
            + analysis.market_opportunities[:2]
        ) if base.success else []

        return IntelligentReportResponse(
            **base.model_dump(exclude={"warnings", "report"}),
            report=base.report,
            warnings=warnings,
            actionable_insights=actionable_insights,
            enhanced_content=enhanced_content,
        )


# =============================================================================
# Helpers
# =============================================================================

def calculate_data_completeness(ready: int, total: int) -> int:
    """Integer percentage of data-ready competitors, clamped to [0, 100]."""
    if total <= 0:
        return 100
    return max(0, min(100, round(100 * ready / total)))


def version_payload(report: Report) -> dict[str, Any]:
    """Durable content stored in a report's first version."""
    return report.model_dump(
        mode="json",
        include={"title", "content", "format", "sections", "metadata"},
    )


async def create_report_generator(
    settings: Optional[Settings] = None,
    **kwargs,
) -> ReportGenerator:
    """Factory function to create a configured ReportGenerator."""
    return ReportGenerator(settings=settings, **kwargs)


__all__ = [
    "ReportGenerator",
    "GenerationStateDict",
    "ReportGenerationError",
    "ValidationError",
    "DependencyError",
    "AnalysisError",
    "AnalysisTimeoutError",
    "PersistenceError",
    "calculate_data_completeness",
    "version_payload",
    "create_report_generator",
]
