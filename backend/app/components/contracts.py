"""
Contract models for the query bridge.

Requests and the tagged response envelopes returned by the HTTP surface. A
visualization success is the engine's trace document itself, so it has no
model here; it travels as a plain dict.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.core.execution_error_types import MISSING_FIELDS_MESSAGE, QueryValidationError


class QueryRequest(BaseModel):
    json_data: Optional[str] = Field(default=None, description="JSON document handed to the engine verbatim")
    query_string: Optional[str] = Field(default=None, description="Query expression for the engine")

    def require_fields(self) -> "QueryRequest":
        """Both fields must be present and non-empty"""
        if not self.json_data or not self.query_string:
            raise QueryValidationError(MISSING_FIELDS_MESSAGE)
        return self


class QueryResult(BaseModel):
    result: str


class QueryFailure(BaseModel):
    error: str


class VisualizationFailure(BaseModel):
    error: str
    raw_output: Optional[str] = None
    stderr: Optional[str] = None


QueryEnvelope = Union[QueryResult, QueryFailure]
VisualizationEnvelope = Union[VisualizationFailure, Any]


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    jqlite_available: bool
    jqlite_path: str
    visualization_available: bool
    visualization_path: str


class ReadinessStatus(BaseModel):
    status: Literal["ready", "not_ready"]
    message: str
    timestamp: str


def envelope_to_body(envelope: Union[QueryEnvelope, VisualizationEnvelope]) -> Any:
    """Serialize an envelope to the JSON body sent to clients"""
    if isinstance(envelope, BaseModel):
        return envelope.model_dump(exclude_none=True)
    return envelope
