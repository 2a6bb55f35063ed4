from typing import List

from fastapi import APIRouter, Depends

from healthscan.api.predict import get_gateway
from healthscan.schemas.prediction import BackendStatus
from healthscan.services.gateway import ClassifierGateway
from healthscan.services.registry import BackendSlot

router = APIRouter(prefix="/models", tags=["models"])


def _status(slot: BackendSlot) -> BackendStatus:
    return BackendStatus(
        body_part=slot.body_part.value,
        configured=slot.configured,
        state=slot.state.value,
        load_attempts=slot.load_attempts,
        error=slot.error,
    )


@router.get("", response_model=List[BackendStatus])
def list_backends(gateway: ClassifierGateway = Depends(get_gateway)) -> List[BackendStatus]:
    """Report the load state of every body-part classifier slot."""
    return [_status(slot) for slot in gateway.registry.slots()]


@router.post("/{body_part}/reset", response_model=BackendStatus)
def reset_backend(
    body_part: str,
    gateway: ClassifierGateway = Depends(get_gateway),
) -> BackendStatus:
    """Clear a failed or loaded slot so the next request attempts a fresh load.

    Failed loads are never retried automatically; this is the only way back.
    """
    (slot,) = gateway.reset(body_part)
    return _status(slot)
