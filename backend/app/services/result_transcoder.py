"""
Turns visualization engine output into a structured trace document
"""
import json
from dataclasses import dataclass
from typing import Any, Optional

from app.components.contracts import VisualizationFailure
from app.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

PARSE_FAILURE_MESSAGE = "Failed to parse visualization output"


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are not valid JSON
    raise ValueError(f"Invalid JSON constant: {name}")


@dataclass(frozen=True)
class TranscodeResult:
    trace: Any = None
    failure: Optional[VisualizationFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def transcode(stdout: str, stderr: str = "") -> TranscodeResult:
    """
    Parse engine stdout as JSON

    Unparseable output becomes a diagnostic shape carrying the raw text and
    stderr instead of an exception.
    """
    try:
        trace = json.loads(stdout, parse_constant=_reject_constant)
    except ValueError as e:
        logger.info(
            f"Visualization output is not valid JSON: {e}",
            extra={"raw_output_chars": len(stdout)}
        )
        return TranscodeResult(
            failure=VisualizationFailure(
                error=PARSE_FAILURE_MESSAGE,
                raw_output=stdout,
                stderr=stderr or "",
            )
        )
    return TranscodeResult(trace=trace)
