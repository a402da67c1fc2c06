"""
Query and visualization endpoints
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.components.contracts import QueryRequest, envelope_to_body
from app.services.query_bridge import QueryBridge, get_query_bridge

router = APIRouter(prefix="/api", tags=["query"])


@router.post("/query")
async def execute_query(
    payload: QueryRequest,
    request: Request,
    bridge: QueryBridge = Depends(get_query_bridge),
):
    """
    Run a query through the query engine

    Returns:
        {"result": ...} on success, {"error": ...} for any engine-side failure
    """
    envelope = await bridge.run_query(payload, request_id=getattr(request.state, "request_id", None))
    return JSONResponse(content=envelope_to_body(envelope))


@router.post("/visualize")
async def visualize_query(
    payload: QueryRequest,
    request: Request,
    bridge: QueryBridge = Depends(get_query_bridge),
):
    """
    Run a query through the visualization engine

    Returns:
        The engine's trace document, or {"error": ..., "raw_output"?, "stderr"?}
    """
    envelope = await bridge.run_visualization(payload, request_id=getattr(request.state, "request_id", None))
    return JSONResponse(content=envelope_to_body(envelope))
