from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    ISSUE_DETECTED = "issue_detected"
    NEEDS_ATTENTION = "needs_attention"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class HealthVerdict(BaseModel):
    status: HealthStatus = Field(..., description="Normalised health status for the scan.")
    condition: str = Field(
        ...,
        description="Human-readable label with the rounded confidence, e.g. 'Detected: cataract (92% confidence)'.",
    )
    confidence: float = Field(..., ge=0.0, le=1.0, description="Probability of the top prediction.")
    recommendations: List[str] = Field(
        default_factory=list,
        description="Ordered care recommendations derived from status and confidence.",
    )
    urgency: Urgency = Field(..., description="Urgency level looked up from the status table.")
