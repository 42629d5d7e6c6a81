"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for GET /health, used by load balancers and monitoring."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    service: str = Field(description="Configured application name")
    environment: str = Field(description="Current app environment (dev or prod)")
    database: Literal["connected", "disconnected"] = Field(
        description="Whether the shared database engine answered SELECT 1",
    )
