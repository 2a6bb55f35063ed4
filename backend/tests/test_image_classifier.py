from io import BytesIO

import pytest
import torch
from PIL import Image
from torch import nn

from healthscan.core.errors import ClassificationError
from healthscan.models.image_classifier import (
    CLASSES_FILE,
    DEFAULT_LABELS,
    TorchImageClassifier,
    build_transform,
    create_classifier_model,
    load_classifier_checkpoint,
    save_classifier_checkpoint,
)


def _png(size=32, color=(200, 120, 90)) -> bytes:
    with BytesIO() as buf:
        Image.new("RGB", (size, size), color=color).save(buf, format="PNG")
        return buf.getvalue()


def _uniform_model(num_classes: int) -> nn.Module:
    model = nn.Sequential(nn.AdaptiveAvgPool2d(1), nn.Flatten(), nn.Linear(3, num_classes))
    nn.init.zeros_(model[2].weight)
    nn.init.zeros_(model[2].bias)
    return model.eval()


def test_predict_returns_every_class_in_model_order():
    labels = DEFAULT_LABELS["eyes"]
    classifier = TorchImageClassifier(
        _uniform_model(len(labels)), labels, build_transform({}, image_size=32), label_prefix="eye"
    )

    predictions = classifier.predict(_png())

    assert [label for label, _ in predictions] == labels
    for _, prob in predictions:
        assert prob == pytest.approx(1 / len(labels))


def test_predict_names_unlabelled_outputs():
    classifier = TorchImageClassifier(
        _uniform_model(3), ["healthy_eye"], build_transform({}, image_size=16), label_prefix="eye"
    )
    labels = [label for label, _ in classifier.predict(_png(16))]
    assert labels == ["healthy_eye", "eye_class_1", "eye_class_2"]


def test_predict_rejects_undecodable_bytes():
    classifier = TorchImageClassifier(_uniform_model(2), ["a", "b"], build_transform({}, 16))
    with pytest.raises(ClassificationError, match="Could not decode image"):
        classifier.predict(b"definitely not an image")


def test_transform_applies_recorded_normalisation():
    transform = build_transform({"image_size": 8, "mean": [0.5, 0.5, 0.5], "std": [0.5, 0.5, 0.5]})
    tensor = transform(Image.new("RGB", (20, 20), color=(255, 255, 255)))
    assert tuple(tensor.shape) == (3, 8, 8)
    assert torch.allclose(tensor, torch.ones_like(tensor))


def test_unsupported_architecture():
    with pytest.raises(ValueError, match="Unsupported classifier architecture"):
        create_classifier_model(3, arch="resnet9000")


def test_missing_checkpoint_raises_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError, match="classifier.pt"):
        load_classifier_checkpoint(tmp_path / "eye_classifier", body_part="eyes")


def test_saved_checkpoint_loads_for_inference(tmp_path):
    labels = DEFAULT_LABELS["eyes"]
    model = create_classifier_model(len(labels), arch="mobilenet_v3_small")
    save_classifier_checkpoint(
        tmp_path,
        model,
        labels,
        {"arch": "mobilenet_v3_small", "image_size": 64, "num_classes": len(labels)},
    )
    (tmp_path / CLASSES_FILE).unlink()  # falls back to the default eye labels

    classifier = load_classifier_checkpoint(tmp_path, body_part="eyes")
    predictions = classifier.predict(_png(80))

    assert [label for label, _ in predictions] == labels
    assert sum(prob for _, prob in predictions) == pytest.approx(1.0, abs=1e-4)
    assert all(0.0 <= prob <= 1.0 for _, prob in predictions)


def test_checkpoint_without_labels_for_unknown_part(tmp_path):
    model = create_classifier_model(2, arch="mobilenet_v3_small")
    save_classifier_checkpoint(tmp_path, model, ["a", "b"], {"arch": "mobilenet_v3_small"})
    (tmp_path / CLASSES_FILE).unlink()
    with pytest.raises(FileNotFoundError, match="no default labels"):
        load_classifier_checkpoint(tmp_path, body_part="nails")
