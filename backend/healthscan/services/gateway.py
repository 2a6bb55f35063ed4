from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional, Tuple

from healthscan.core.config import Settings
from healthscan.core.errors import (
    BackendUnavailableError,
    ClassificationError,
    InvalidImageError,
    NoPredictionsError,
)
from healthscan.models.image_classifier import load_classifier_checkpoint
from healthscan.schemas.prediction import Prediction
from healthscan.schemas.verdict import HealthVerdict
from healthscan.services.body_parts import BodyPart, normalize_body_part
from healthscan.services.fallback import heuristic_predictions
from healthscan.services.normalizer import analyze_predictions
from healthscan.services.registry import (
    BackendLoader,
    BackendRegistry,
    BackendSlot,
    ImageClassifier,
    ResolvedBackend,
)

logger = logging.getLogger(__name__)

STRICT = "strict"
HEURISTIC = "heuristic"


def decode_image_payload(image: Optional[str]) -> bytes:
    """Decode the base64 image sent by the client, rejecting empty payloads."""
    if image is None or not image.strip():
        raise InvalidImageError("Image data is required")

    data = image.strip()
    if data.startswith("data:"):
        _, _, data = data.partition(",")
    data = "".join(data.split())

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image data is not valid base64") from exc
    if not raw:
        raise InvalidImageError("Decoded image is empty")
    return raw


def torch_backend_loader(settings: Settings) -> BackendLoader:
    """Loader that reads ``<model_root>/<model_dirs[part]>`` checkpoints."""
    model_dirs = {normalize_body_part(key): value for key, value in settings.model_dirs.items()}

    def load(body_part: BodyPart) -> ImageClassifier:
        return load_classifier_checkpoint(
            settings.model_root / model_dirs[body_part],
            body_part=body_part.value,
            device=settings.device,
            image_size=settings.image_size,
        )

    return load


class ClassifierGateway:
    """Resolves a classifier per body part and applies the fallback policy."""

    def __init__(
        self,
        settings: Settings,
        loader: Optional[BackendLoader] = None,
        registry: Optional[BackendRegistry] = None,
    ) -> None:
        self.settings = settings
        self.policy = settings.fallback_policy
        if registry is None:
            configured = [normalize_body_part(key) for key in settings.model_dirs]
            registry = BackendRegistry(loader or torch_backend_loader(settings), configured)
        self.registry = registry

    def model_loaded(self) -> bool:
        return self.registry.any_loaded()

    def _heuristic(self, image_bytes: bytes) -> List[Tuple[str, float]]:
        return heuristic_predictions(
            image_bytes,
            large_threshold=self.settings.heuristic_large_bytes,
            medium_threshold=self.settings.heuristic_medium_bytes,
        )

    def _unavailable_reason(self, resolved: ResolvedBackend) -> str:
        part = resolved.body_part.value
        if not resolved.configured:
            return f"No model configured for body part '{part}'"
        return f"Model for body part '{part}' failed to load: {resolved.error}"

    def _run_backend(self, resolved: ResolvedBackend, image_bytes: bytes) -> List[Tuple[str, float]]:
        part = resolved.body_part.value
        if not resolved.available:
            reason = self._unavailable_reason(resolved)
            if self.policy == STRICT:
                logger.error("%s (policy=strict)", reason)
                raise BackendUnavailableError(reason)
            logger.info("%s; using size heuristic", reason)
            return self._heuristic(image_bytes)

        try:
            return resolved.backend.predict(image_bytes)
        except Exception as exc:
            logger.exception("Classifier for '%s' failed (model loaded: %s)", part, resolved.available)
            if self.policy == HEURISTIC:
                return self._heuristic(image_bytes)
            if isinstance(exc, ClassificationError):
                raise
            raise ClassificationError(f"Classifier for '{part}' failed: {exc}") from exc

    def classify(self, image: Optional[str], body_part: Optional[str] = None) -> List[Prediction]:
        """Return raw predictions for a base64 image and body-part tag."""
        image_bytes = decode_image_payload(image)
        part = normalize_body_part(body_part, default=self.settings.default_body_part)
        logger.info("Processing %d-byte image for body part '%s'", len(image_bytes), part.value)

        resolved = self.registry.resolve(part)
        raw = self._run_backend(resolved, image_bytes)
        if not raw:
            raise NoPredictionsError(f"Classifier for '{part.value}' returned no predictions")

        return [Prediction(class_name=label, probability=float(prob)) for label, prob in raw]

    def analyze(self, image: Optional[str], body_part: Optional[str] = None) -> HealthVerdict:
        """Classify and normalise into a :class:`HealthVerdict`."""
        predictions = self.classify(image, body_part)
        part = normalize_body_part(body_part, default=self.settings.default_body_part)
        verdict = analyze_predictions(predictions, part)
        logger.info("Verdict for '%s': %s (%s)", part.value, verdict.status.value, verdict.urgency.value)
        return verdict

    def reset(self, body_part: Optional[str] = None) -> List[BackendSlot]:
        part = normalize_body_part(body_part) if body_part is not None else None
        return self.registry.reset(part)
