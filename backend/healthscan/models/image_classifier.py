from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import torch
from PIL import Image, UnidentifiedImageError
from torch import nn
from torchvision import models, transforms

from healthscan.core.errors import ClassificationError

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "classifier.pt"
CLASSES_FILE = "classes.json"

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)

# Class order of the exported eye model; used when a checkpoint ships
# without classes.json.
DEFAULT_LABELS: Dict[str, List[str]] = {
    "eyes": [
        "healthy_eye",
        "dry_eye",
        "conjunctivitis",
        "cataract",
        "glaucoma",
        "cornea_ulcer",
    ],
}


def create_classifier_model(
    num_classes: int,
    arch: str = "mobilenet_v3_small",
    dropout: float = 0.1,
) -> nn.Module:
    """Build a torchvision backbone with a classification head for ``num_classes``."""
    if arch == "vit_b_16":
        model = models.vit_b_16(weights=None)
        in_features = model.heads.head.in_features
        head_layers: List[nn.Module] = [nn.LayerNorm(in_features)]
        if dropout is not None and dropout > 0:
            head_layers.append(nn.Dropout(dropout))
        head_layers.append(nn.Linear(in_features, num_classes))
        model.heads = nn.Sequential(*head_layers)
        return model

    if arch == "mobilenet_v3_small":
        model = models.mobilenet_v3_small(weights=None, dropout=dropout)
        in_features = model.classifier[-1].in_features
        model.classifier[-1] = nn.Linear(in_features, num_classes)
        return model

    raise ValueError(f"Unsupported classifier architecture: {arch!r}")


def save_classifier_checkpoint(
    output_dir: Path,
    model: nn.Module,
    labels: Sequence[str],
    config: Dict[str, object],
) -> None:
    """Persist model weights plus the metadata needed for inference."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    ckpt = {
        "model_state": model.state_dict(),
        "config": config,
    }
    torch.save(ckpt, output_dir / CHECKPOINT_FILE)

    class_to_idx = {label: idx for idx, label in enumerate(labels)}
    (output_dir / CLASSES_FILE).write_text(json.dumps(class_to_idx, indent=2, sort_keys=True))


def _read_labels(classes_path: Path) -> List[str]:
    class_to_idx = json.loads(classes_path.read_text())
    idx_to_class = [""] * len(class_to_idx)
    for label, idx in class_to_idx.items():
        idx_to_class[int(idx)] = label
    return idx_to_class


def build_transform(config: Dict[str, object], image_size: int = 224) -> Callable:
    size = int(config.get("image_size", image_size))
    steps = [
        transforms.Resize((size, size)),
        transforms.ToTensor(),
    ]
    # Checkpoints exported from Teachable Machine style models expect plain
    # [0, 1] pixels; ImageNet-trained ones record their normalisation.
    if config.get("mean") is not None and config.get("std") is not None:
        steps.append(transforms.Normalize(mean=tuple(config["mean"]), std=tuple(config["std"])))
    return transforms.Compose(steps)


class TorchImageClassifier:
    """Callable wrapper that turns raw image bytes into (label, probability) pairs."""

    def __init__(
        self,
        model: nn.Module,
        labels: Sequence[str],
        transform: Callable,
        label_prefix: str = "class",
        device: torch.device | str = "cpu",
    ) -> None:
        self.model = model
        self.labels = list(labels)
        self.transform = transform
        self.label_prefix = label_prefix
        self.device = torch.device(device)

    def _label_for(self, idx: int) -> str:
        if 0 <= idx < len(self.labels) and self.labels[idx]:
            return self.labels[idx]
        return f"{self.label_prefix}_class_{idx}"

    def predict(self, image_bytes: bytes) -> List[Tuple[str, float]]:
        """Score every class; results follow the model's output order."""
        try:
            with BytesIO(image_bytes) as buf:
                image = Image.open(buf).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ClassificationError(f"Could not decode image: {exc}") from exc

        tensor = self.transform(image).unsqueeze(0).to(self.device)

        with torch.no_grad():
            logits = self.model(tensor)
            probs = torch.softmax(logits, dim=1).squeeze(0)

        return [(self._label_for(idx), float(prob)) for idx, prob in enumerate(probs.tolist())]


def load_classifier_checkpoint(
    model_dir: Path,
    body_part: str,
    device: torch.device | str = "cpu",
    image_size: int = 224,
) -> TorchImageClassifier:
    """Load a trained checkpoint from disk and wrap it for inference."""
    model_dir = Path(model_dir)
    ckpt_path = model_dir / CHECKPOINT_FILE
    if not ckpt_path.exists():
        raise FileNotFoundError(
            f"Missing classifier checkpoint in {model_dir}. Expected {CHECKPOINT_FILE}."
        )

    classes_path = model_dir / CLASSES_FILE
    labels: Optional[List[str]] = None
    if classes_path.exists():
        labels = _read_labels(classes_path)
    else:
        labels = DEFAULT_LABELS.get(body_part)
        if labels is None:
            raise FileNotFoundError(
                f"Missing {CLASSES_FILE} in {model_dir} and no default labels for '{body_part}'."
            )
        logger.warning("No %s in %s, using default %s labels.", CLASSES_FILE, model_dir, body_part)

    ckpt = torch.load(ckpt_path, map_location=device)
    config = ckpt.get("config", {})
    model = create_classifier_model(
        num_classes=int(config.get("num_classes", len(labels))),
        arch=str(config.get("arch", "mobilenet_v3_small")),
        dropout=float(config.get("dropout", 0.1)),
    )
    model.load_state_dict(ckpt["model_state"])
    model.to(device)
    model.eval()

    prefix = body_part[:-1] if body_part.endswith("s") else body_part
    return TorchImageClassifier(
        model=model,
        labels=labels,
        transform=build_transform(config, image_size=image_size),
        label_prefix=prefix,
        device=device,
    )
