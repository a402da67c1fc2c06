"""
Query bridge service

Turns one query request into one bounded engine invocation and one response
envelope. Per request the flow is

    Validating -> Preparing -> Invoking -> (Transcoding) -> Classified -> Cleanup -> Done

and the transient input is released on every path, including unexpected
faults while invoking or classifying.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from app.components.contracts import (HealthStatus, QueryEnvelope,
                                      QueryFailure, QueryRequest,
                                      VisualizationEnvelope,
                                      VisualizationFailure)
from app.core.config import Settings, get_settings
from app.core.logging_config import LoggingConfig
from app.core.metrics import (engine_invocation_duration_seconds,
                              engine_invocations_total,
                              engine_responses_total)
from app.core.tracing import get_tracer
from app.services.outcome_classifier import (classify_query,
                                             classify_visualization)
from app.services.process_invoker import (BoundedProcessInvoker,
                                          ProcessInvocationResult)
from app.services.transient_input import TransientInputStore

logger = LoggingConfig.get_logger(__name__)

QUERY_ENGINE = "jqlite"
VISUALIZATION_ENGINE = "jqlite_viz"


class QueryBridge:
    """Orchestrates the transient input store, the invoker and the classifier"""

    def __init__(
        self,
        settings: Settings,
        store: Optional[TransientInputStore] = None,
        invoker: Optional[BoundedProcessInvoker] = None,
    ):
        self.settings = settings
        self.store = store or TransientInputStore(settings.resolved_temp_dir)
        self.invoker = invoker or BoundedProcessInvoker(settings.output_limit_policy)
        self.tracer = get_tracer(__name__)

    @property
    def engine_path(self) -> Path:
        return Path(self.settings.jqlite_path)

    @property
    def visualizer_path(self) -> Path:
        return Path(self.settings.jqlite_viz_path)

    def health(self) -> HealthStatus:
        """Availability flags and resolved paths of both engines"""
        return HealthStatus(
            jqlite_available=self.engine_path.exists(),
            jqlite_path=str(self.engine_path),
            visualization_available=self.visualizer_path.exists(),
            visualization_path=str(self.visualizer_path),
        )

    async def run_query(self, request: QueryRequest, request_id: Optional[str] = None) -> QueryEnvelope:
        """
        Execute a query against the query engine

        Raises:
            QueryValidationError: json_data or query_string missing; nothing is written or spawned
        """
        request.require_fields()

        async with self.store.scoped(request.json_data, request_id) as handle:
            result = await self._invoke(
                QUERY_ENGINE,
                self.engine_path,
                [request.query_string, str(handle.path)],
            )
            envelope = classify_query(result, self.settings.query_timeout_ms)

        status = "error" if isinstance(envelope, QueryFailure) else "result"
        engine_responses_total.labels(endpoint="query", status=status).inc()
        return envelope

    async def run_visualization(self, request: QueryRequest, request_id: Optional[str] = None) -> VisualizationEnvelope:
        """
        Execute a query against the visualization engine and return its trace

        Raises:
            QueryValidationError: json_data or query_string missing
        """
        request.require_fields()

        if not self.visualizer_path.exists():
            logger.info(
                "Visualization requested but engine is missing",
                extra={"visualization_path": str(self.visualizer_path)}
            )
            engine_responses_total.labels(endpoint="visualize", status="error").inc()
            return VisualizationFailure(
                error=f"Visualization not available. Please build {self.visualizer_path.name} first."
            )

        async with self.store.scoped(request.json_data, request_id) as handle:
            result = await self._invoke(
                VISUALIZATION_ENGINE,
                self.visualizer_path,
                ["--visualize", request.query_string, str(handle.path)],
            )
            envelope = classify_visualization(result, self.settings.query_timeout_ms)

        status = "error" if isinstance(envelope, VisualizationFailure) else "result"
        engine_responses_total.labels(endpoint="visualize", status=status).inc()
        return envelope

    async def _invoke(self, engine: str, executable: Path, args: List[str]) -> ProcessInvocationResult:
        with self.tracer.start_as_current_span(f"engine.{engine}") as span:
            span.set_attribute("engine.name", engine)
            span.set_attribute("engine.path", str(executable))
            result = await self.invoker.invoke(
                executable,
                args,
                timeout_ms=self.settings.query_timeout_ms,
                max_output_bytes=self.settings.max_output_bytes,
            )
            span.set_attribute("engine.outcome", result.outcome)
            span.set_attribute("engine.duration_ms", result.duration_ms)
            if result.exit_code is not None:
                span.set_attribute("engine.exit_code", result.exit_code)

        engine_invocations_total.labels(engine=engine, outcome=result.outcome).inc()
        engine_invocation_duration_seconds.labels(engine=engine).observe(result.duration_ms / 1000)

        log_extra = {
            "engine": engine,
            "outcome": result.outcome,
            "duration_ms": result.duration_ms,
            "exit_code": result.exit_code,
            "stderr_chars": len(result.stderr),
        }
        if result.exit_error is None:
            logger.info("Engine invocation finished", extra=log_extra)
        else:
            logger.warning(f"Engine invocation failed: {result.exit_error.message}", extra=log_extra)
        return result


@lru_cache()
def get_query_bridge() -> QueryBridge:
    """Get the process-wide bridge built from cached settings"""
    return QueryBridge(get_settings())
