import base64
import threading
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from healthscan.core.config import Settings
from healthscan.main import create_app
from healthscan.services.body_parts import BodyPart
from healthscan.services.gateway import ClassifierGateway


class FakeClassifier:
    """Stands in for a torch checkpoint; returns canned predictions."""

    def __init__(self, predictions: List[Tuple[str, float]], error: Optional[Exception] = None):
        self.predictions = predictions
        self.error = error
        self.calls = 0

    def predict(self, image_bytes: bytes) -> List[Tuple[str, float]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.predictions)


class CountingLoader:
    """Loader that records every load attempt.

    ``gate`` lets a test hold a load open to simulate a slow model download.
    """

    def __init__(
        self,
        backends: Optional[Dict[BodyPart, FakeClassifier]] = None,
        error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.backends = backends or {}
        self.error = error
        self.gate = gate
        self.started = threading.Event()
        self.calls: List[BodyPart] = []
        self._lock = threading.Lock()

    def __call__(self, body_part: BodyPart) -> FakeClassifier:
        with self._lock:
            self.calls.append(body_part)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.backends[body_part]


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = {
            "model_root": tmp_path,
            "model_dirs": {"eyes": "eye_classifier"},
            "fallback_policy": "strict",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def eye_classifier():
    return FakeClassifier(
        [
            ("healthy_eye", 0.05),
            ("dry_eye", 0.01),
            ("conjunctivitis", 0.01),
            ("cataract", 0.92),
            ("glaucoma", 0.005),
            ("cornea_ulcer", 0.005),
        ]
    )


@pytest.fixture
def make_client(make_settings):
    def _make(loader: CountingLoader, **overrides) -> TestClient:
        settings = make_settings(**overrides)
        gateway = ClassifierGateway(settings, loader=loader)
        return TestClient(create_app(settings=settings, gateway=gateway))

    return _make
