from __future__ import annotations

from typing import List, Tuple

# (label, probability) triples per payload-size tier.
LARGE_TIER: Tuple[Tuple[str, float], ...] = (
    ("healthy_skin", 0.75),
    ("mild_irritation", 0.20),
    ("needs_attention", 0.05),
)
MEDIUM_TIER: Tuple[Tuple[str, float], ...] = (
    ("healthy_skin", 0.60),
    ("mild_irritation", 0.30),
    ("needs_attention", 0.10),
)
SMALL_TIER: Tuple[Tuple[str, float], ...] = (
    ("healthy_skin", 0.40),
    ("mild_irritation", 0.40),
    ("needs_attention", 0.20),
)


def heuristic_predictions(
    image_bytes: bytes,
    large_threshold: int = 50_000,
    medium_threshold: int = 20_000,
) -> List[Tuple[str, float]]:
    """Pseudo-predictions derived from the decoded payload size.

    This is not a model: larger uploads are treated as more detailed photos
    and smaller ones as lower quality. It only stands in when no classifier
    is available and the heuristic policy is enabled.
    """
    size = len(image_bytes)
    if size > large_threshold:
        tier = LARGE_TIER
    elif size > medium_threshold:
        tier = MEDIUM_TIER
    else:
        tier = SMALL_TIER
    return list(tier)
