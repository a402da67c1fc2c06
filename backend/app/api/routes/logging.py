"""
API endpoints for logging management
"""
from typing import Dict

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.core.logging_config import LoggingConfig

router = APIRouter(prefix="/api/logging", tags=["logging"])

VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "NOTSET"]


class LogLevelUpdate(BaseModel):
    """Request model for updating log level"""
    level: str = Field(..., description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL")


class LogLevelResponse(BaseModel):
    """Response model for log level"""
    module: str
    level: str


class LogMetricsResponse(BaseModel):
    """Response model for log metrics"""
    metrics: Dict[str, int]
    total: int


@router.get("/levels", response_model=Dict[str, str])
async def get_log_levels():
    """Get current log levels for all known modules"""
    return {module: LoggingConfig.get_module_level(module) for module in LoggingConfig.known_modules()}


@router.get("/levels/{module:path}", response_model=LogLevelResponse)
async def get_module_log_level(module: str):
    """Get log level for a specific module"""
    return LogLevelResponse(module=module, level=LoggingConfig.get_module_level(module))


@router.put("/levels/{module:path}", response_model=LogLevelResponse)
async def set_module_log_level(module: str, level_update: LogLevelUpdate):
    """Set log level for a specific module"""
    level = level_update.level.upper()

    if level not in VALID_LEVELS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid log level '{level}'. Valid levels: {', '.join(VALID_LEVELS)}"
        )

    LoggingConfig.set_module_level(module, level)
    return LogLevelResponse(module=module, level=level)


@router.get("/metrics", response_model=LogMetricsResponse)
async def get_log_metrics():
    """Get logging metrics (count of logs by level)"""
    metrics = LoggingConfig.get_metrics()
    return LogMetricsResponse(metrics=metrics, total=sum(metrics.values()))


@router.post("/metrics/reset")
async def reset_log_metrics():
    """Reset logging metrics"""
    LoggingConfig.reset_metrics()
    return {"message": "Log metrics reset successfully"}
