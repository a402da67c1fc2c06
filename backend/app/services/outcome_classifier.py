"""
Outcome classification

Maps a ProcessInvocationResult to exactly one response envelope. The rules
are ordered and the first match wins.
"""
from app.components.contracts import (QueryEnvelope, QueryFailure, QueryResult,
                                      VisualizationEnvelope,
                                      VisualizationFailure)
from app.services.process_invoker import ProcessInvocationResult
from app.services.result_transcoder import transcode


def _format_seconds(timeout_ms: int) -> str:
    seconds = timeout_ms / 1000
    unit = "second" if seconds == 1 else "seconds"
    return f"{seconds:g} {unit}"


def query_timeout_message(timeout_ms: int) -> str:
    return f"Query execution timeout (exceeded {_format_seconds(timeout_ms)})"


def visualization_timeout_message(timeout_ms: int) -> str:
    return f"Visualization timeout (exceeded {_format_seconds(timeout_ms)})"


def classify_query(result: ProcessInvocationResult, timeout_ms: int) -> QueryEnvelope:
    """
    Classify a query engine invocation

    1. killed by timeout          -> fixed timeout failure
    2. exit error, stderr present -> stderr
    3. exit error, no stderr      -> "Execution error: <message>"
    4. clean exit, stderr present -> stderr (warnings are never dropped)
    5. otherwise                  -> trimmed stdout
    """
    if result.was_killed_by_timeout:
        return QueryFailure(error=query_timeout_message(timeout_ms))

    stderr = result.stderr.strip()
    if result.exit_error is not None:
        if stderr:
            return QueryFailure(error=stderr)
        return QueryFailure(error=f"Execution error: {result.exit_error.message}")

    if stderr:
        return QueryFailure(error=stderr)

    return QueryResult(result=result.stdout.strip())


def classify_visualization(result: ProcessInvocationResult, timeout_ms: int) -> VisualizationEnvelope:
    """
    Classify a visualization engine invocation

    Timeouts and exit errors are reported first; a clean exit hands stdout to
    the transcoder, whose diagnostic shape covers malformed output.
    """
    if result.was_killed_by_timeout:
        return VisualizationFailure(error=visualization_timeout_message(timeout_ms))

    if result.exit_error is not None:
        return VisualizationFailure(
            error=f"Execution error: {result.exit_error.message}",
            stderr=result.stderr,
        )

    transcoded = transcode(result.stdout, result.stderr)
    if not transcoded.ok:
        return transcoded.failure
    return transcoded.trace
