from fastapi import APIRouter, Depends, Request
from fastapi import status as http_status

from healthscan.schemas.prediction import ErrorResponse, PredictionRequest, PredictionResponse
from healthscan.schemas.verdict import HealthVerdict
from healthscan.services.gateway import ClassifierGateway

router = APIRouter(tags=["prediction"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Missing or invalid image, or unsupported body part."},
    500: {"model": ErrorResponse, "description": "Backend unavailable or classification failed."},
}


def get_gateway(request: Request) -> ClassifierGateway:
    return request.app.state.gateway


@router.post(
    "/predict",
    response_model=PredictionResponse,
    status_code=http_status.HTTP_200_OK,
    responses=_ERRORS,
    summary="Classify a body-part photo",
)
def predict(
    payload: PredictionRequest,
    gateway: ClassifierGateway = Depends(get_gateway),
) -> PredictionResponse:
    """Return the raw class predictions for a base64 image.

    The backend is chosen from ``bodyPart``; when no model is available the
    configured fallback policy decides between an error and the size heuristic.
    """
    predictions = gateway.classify(payload.image, payload.body_part)
    return PredictionResponse(predictions=predictions)


@router.post(
    "/analyze",
    response_model=HealthVerdict,
    status_code=http_status.HTTP_200_OK,
    responses=_ERRORS,
    summary="Classify a photo and normalise it into a health verdict",
)
def analyze(
    payload: PredictionRequest,
    gateway: ClassifierGateway = Depends(get_gateway),
) -> HealthVerdict:
    return gateway.analyze(payload.image, payload.body_part)
