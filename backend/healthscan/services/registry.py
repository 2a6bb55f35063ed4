from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from healthscan.services.body_parts import BodyPart

logger = logging.getLogger(__name__)


class ImageClassifier(Protocol):
    def predict(self, image_bytes: bytes) -> List[Tuple[str, float]]:
        ...


BackendLoader = Callable[[BodyPart], ImageClassifier]


class SlotState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class BackendSlot:
    body_part: BodyPart
    configured: bool = False
    state: SlotState = SlotState.UNLOADED
    backend: Optional[ImageClassifier] = None
    error: Optional[str] = None
    load_attempts: int = 0
    done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def available(self) -> bool:
        return self.state == SlotState.LOADED and self.backend is not None


@dataclass(frozen=True)
class ResolvedBackend:
    """Point-in-time view of a slot, captured under the registry lock.

    Requests work from this copy so a concurrent :meth:`BackendRegistry.reset`
    cannot pull the backend out from under them.
    """

    body_part: BodyPart
    configured: bool
    state: SlotState
    backend: Optional[ImageClassifier] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.state == SlotState.LOADED and self.backend is not None


class BackendRegistry:
    """Per-body-part classifier slots with lazy, at-most-once loading.

    Each slot moves ``unloaded -> loading -> loaded | failed``. The
    ``unloaded -> loading`` step is a compare-and-set under ``_lock`` so only
    one caller runs the loader for a given body part; concurrent callers for
    the same part wait on the slot's ``done`` event. The lock is never held
    while a loader runs, so different body parts load independently.

    A failed slot stays failed until :meth:`reset` is called.
    """

    def __init__(self, loader: BackendLoader, configured: Iterable[BodyPart]) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        configured_parts = set(configured)
        self._slots: Dict[BodyPart, BackendSlot] = {
            part: BackendSlot(body_part=part, configured=part in configured_parts)
            for part in BodyPart
        }

    def slot(self, body_part: BodyPart) -> BackendSlot:
        return self._slots[body_part]

    def slots(self) -> List[BackendSlot]:
        return list(self._slots.values())

    def any_loaded(self) -> bool:
        return any(slot.available for slot in self._slots.values())

    def _snapshot(self, slot: BackendSlot) -> ResolvedBackend:
        return ResolvedBackend(
            body_part=slot.body_part,
            configured=slot.configured,
            state=slot.state,
            backend=slot.backend,
            error=slot.error,
        )

    def resolve(self, body_part: BodyPart) -> ResolvedBackend:
        """Return a snapshot of the slot for ``body_part``, loading it on first use."""
        slot = self._slots[body_part]
        while True:
            with self._lock:
                if not slot.configured or slot.state in (SlotState.LOADED, SlotState.FAILED):
                    return self._snapshot(slot)
                owner = slot.state == SlotState.UNLOADED
                if owner:
                    slot.state = SlotState.LOADING
                    slot.load_attempts += 1
                    slot.done = threading.Event()
                done = slot.done

            if owner:
                return self._load(slot, done)
            # A reset may land between the load finishing and this waiter
            # waking up; go round again rather than report a stale state.
            done.wait()

    def _load(self, slot: BackendSlot, done: threading.Event) -> ResolvedBackend:
        logger.info("Loading classifier for body part '%s'", slot.body_part.value)
        try:
            backend = self._loader(slot.body_part)
        except FileNotFoundError as exc:
            logger.warning("Classifier artifacts for '%s' not found: %s", slot.body_part.value, exc)
            return self._finish(slot, state=SlotState.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception("Failed to load classifier for '%s'", slot.body_part.value)
            return self._finish(slot, state=SlotState.FAILED, error=f"{type(exc).__name__}: {exc}")
        else:
            logger.info("Classifier for '%s' loaded", slot.body_part.value)
            return self._finish(slot, state=SlotState.LOADED, backend=backend)
        finally:
            # KeyboardInterrupt and friends skip the handlers above; never
            # leave the slot stuck in "loading", which reset() refuses to touch.
            with self._lock:
                if slot.state == SlotState.LOADING:
                    slot.state = SlotState.FAILED
                    slot.backend = None
                    slot.error = "Load interrupted"
            done.set()

    def _finish(
        self,
        slot: BackendSlot,
        state: SlotState,
        backend: Optional[ImageClassifier] = None,
        error: Optional[str] = None,
    ) -> ResolvedBackend:
        with self._lock:
            slot.state = state
            slot.backend = backend
            slot.error = error
            return self._snapshot(slot)

    def reset(self, body_part: Optional[BodyPart] = None) -> List[BackendSlot]:
        """Return slots to ``unloaded`` so the next request loads again.

        Slots that are currently loading are left alone.
        """
        targets = [self._slots[body_part]] if body_part is not None else list(self._slots.values())
        with self._lock:
            for slot in targets:
                if slot.state == SlotState.LOADING:
                    continue
                slot.state = SlotState.UNLOADED
                slot.backend = None
                slot.error = None
                slot.done = threading.Event()
        return targets
