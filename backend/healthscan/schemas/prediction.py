from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Prediction(BaseModel):
    """Single (label, probability) pair produced by a classifier backend."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(..., alias="className", description="Raw classifier label.")
    probability: float = Field(..., ge=0.0, le=1.0, description="Class probability in [0, 1].")


class PredictionRequest(BaseModel):
    """Payload sent by the mobile client for a single scan.

    ``image`` is optional at the schema level so that a missing image is
    reported as a 400 by the gateway instead of a generic validation error.
    """

    model_config = ConfigDict(populate_by_name=True)

    image: Optional[str] = Field(
        None,
        description="Base64-encoded image bytes. A data URL prefix is accepted and stripped.",
    )
    body_part: Optional[str] = Field(
        None,
        alias="bodyPart",
        description="Body part tag (skin, eyes, teeth, face, ears, hair, nails). Defaults to 'eye'.",
    )


class PredictionResponse(BaseModel):
    predictions: List[Prediction] = Field(
        ...,
        description="Class predictions in backend output order (not necessarily sorted).",
    )


class HealthCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    status: str = "OK"
    message: str
    model_loaded: bool = Field(..., alias="modelLoaded")


class BackendStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    body_part: str = Field(..., alias="bodyPart")
    configured: bool = Field(..., description="Whether a checkpoint directory is configured.")
    state: str = Field(..., description="One of unloaded, loading, loaded, failed.")
    load_attempts: int = Field(0, alias="loadAttempts")
    error: Optional[str] = Field(None, description="Last load error, if the slot failed.")


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
