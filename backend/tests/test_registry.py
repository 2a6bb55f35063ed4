import threading

import pytest

from conftest import CountingLoader, FakeClassifier

from healthscan.services.body_parts import BodyPart
from healthscan.services.registry import BackendRegistry, SlotState


def _registry(loader, configured=(BodyPart.EYES,)):
    return BackendRegistry(loader, configured)


def test_slots_start_unloaded():
    registry = _registry(CountingLoader())
    assert {slot.state for slot in registry.slots()} == {SlotState.UNLOADED}
    assert registry.slot(BodyPart.EYES).configured
    assert not registry.slot(BodyPart.SKIN).configured
    assert not registry.any_loaded()


def test_resolve_loads_once_and_reuses_backend():
    backend = FakeClassifier([("healthy_eye", 1.0)])
    loader = CountingLoader({BodyPart.EYES: backend})
    registry = _registry(loader)

    first = registry.resolve(BodyPart.EYES)
    second = registry.resolve(BodyPart.EYES)

    assert first.backend is second.backend
    assert first.state == SlotState.LOADED
    assert first.backend is backend
    assert loader.calls == [BodyPart.EYES]
    assert registry.any_loaded()


def test_unconfigured_part_never_calls_loader():
    loader = CountingLoader()
    slot = _registry(loader).resolve(BodyPart.NAILS)
    assert not slot.available
    assert loader.calls == []


def test_failed_load_is_sticky_until_reset():
    loader = CountingLoader(error=RuntimeError("download failed"))
    registry = _registry(loader)

    resolved = registry.resolve(BodyPart.EYES)
    assert resolved.state == SlotState.FAILED
    assert "download failed" in resolved.error
    registry.resolve(BodyPart.EYES)
    assert len(loader.calls) == 1

    registry.reset(BodyPart.EYES)
    slot = registry.slot(BodyPart.EYES)
    assert slot.state == SlotState.UNLOADED
    assert slot.error is None
    registry.resolve(BodyPart.EYES)
    assert len(loader.calls) == 2
    assert slot.load_attempts == 2


def test_missing_artifacts_mark_slot_failed():
    loader = CountingLoader(error=FileNotFoundError("no classifier.pt"))
    slot = _registry(loader).resolve(BodyPart.EYES)
    assert slot.state == SlotState.FAILED
    assert slot.backend is None


def test_concurrent_resolution_loads_exactly_once():
    gate = threading.Event()
    loader = CountingLoader({BodyPart.EYES: FakeClassifier([("healthy_eye", 1.0)])}, gate=gate)
    registry = _registry(loader)
    results = []

    def worker():
        results.append(registry.resolve(BodyPart.EYES))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    assert loader.started.wait(timeout=5)
    assert registry.slot(BodyPart.EYES).state == SlotState.LOADING

    gate.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(loader.calls) == 1
    assert len(results) == 8
    assert all(slot.available for slot in results)


def test_different_parts_load_independently():
    gate = threading.Event()
    skin = FakeClassifier([("healthy_skin", 1.0)])
    eyes = FakeClassifier([("healthy_eye", 1.0)])

    class PerPartLoader(CountingLoader):
        def __call__(self, body_part):
            if body_part == BodyPart.SKIN:
                return skin
            return super().__call__(body_part)

    loader = PerPartLoader({BodyPart.EYES: eyes}, gate=gate)
    registry = _registry(loader, configured=(BodyPart.EYES, BodyPart.SKIN))

    eye_thread = threading.Thread(target=registry.resolve, args=(BodyPart.EYES,))
    eye_thread.start()
    assert loader.started.wait(timeout=5)

    # Eyes are still loading; skin must not wait for them.
    skin_slot = registry.resolve(BodyPart.SKIN)
    assert skin_slot.backend is skin
    assert registry.slot(BodyPart.EYES).state == SlotState.LOADING

    gate.set()
    eye_thread.join(timeout=5)
    assert registry.slot(BodyPart.EYES).backend is eyes


def test_reset_leaves_loading_slot_alone():
    gate = threading.Event()
    loader = CountingLoader({BodyPart.EYES: FakeClassifier([("healthy_eye", 1.0)])}, gate=gate)
    registry = _registry(loader)

    thread = threading.Thread(target=registry.resolve, args=(BodyPart.EYES,))
    thread.start()
    assert loader.started.wait(timeout=5)

    registry.reset()
    assert registry.slot(BodyPart.EYES).state == SlotState.LOADING

    gate.set()
    thread.join(timeout=5)
    assert registry.slot(BodyPart.EYES).state == SlotState.LOADED


def test_resolved_backend_survives_later_reset():
    backend = FakeClassifier([("healthy_eye", 1.0)])
    registry = _registry(CountingLoader({BodyPart.EYES: backend}))

    resolved = registry.resolve(BodyPart.EYES)
    registry.reset(BodyPart.EYES)

    assert registry.slot(BodyPart.EYES).state == SlotState.UNLOADED
    assert resolved.available
    assert resolved.backend is backend


def test_interrupted_load_can_be_reset():
    loader = CountingLoader(error=SystemExit(1))
    registry = _registry(loader)

    with pytest.raises(SystemExit):
        registry.resolve(BodyPart.EYES)

    slot = registry.slot(BodyPart.EYES)
    assert slot.state == SlotState.FAILED
    assert slot.error == "Load interrupted"
    assert slot.done.is_set()

    loader.error = None
    loader.backends[BodyPart.EYES] = FakeClassifier([("healthy_eye", 1.0)])
    registry.reset(BodyPart.EYES)
    assert registry.resolve(BodyPart.EYES).available
    assert len(loader.calls) == 2
