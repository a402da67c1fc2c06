"""
Execution error types for engine invocations and request validation
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

MISSING_FIELDS_MESSAGE = "Missing required fields: json_data and query_string"


class InvocationErrorKind(str, Enum):
    """Why an engine invocation did not exit cleanly"""
    LAUNCH_FAILED = "launch_failed"  # Executable missing or not runnable
    NON_ZERO_EXIT = "non_zero_exit"
    SIGNALLED = "signalled"  # Terminated by a signal we did not send
    TIMEOUT = "timeout"
    OUTPUT_LIMIT = "output_limit"  # Combined output exceeded the ceiling


@dataclass(frozen=True)
class ProcessExitError:
    """Represents an abnormal process exit; a value, never raised"""

    kind: InvocationErrorKind
    message: str
    exit_code: Optional[int] = None
    signal: Optional[int] = None


class QueryValidationError(Exception):
    """Raised when a request lacks json_data or query_string"""

    status_code = 400

    def __init__(self, message: str = MISSING_FIELDS_MESSAGE):
        super().__init__(message)
        self.message = message
