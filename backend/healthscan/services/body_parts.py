from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from healthscan.core.errors import UnsupportedBodyPartError


class BodyPart(str, Enum):
    SKIN = "skin"
    EYES = "eyes"
    TEETH = "teeth"
    FACE = "face"
    EARS = "ears"
    HAIR = "hair"
    NAILS = "nails"


_ALIASES: Dict[str, BodyPart] = {
    "eye": BodyPart.EYES,
}


def normalize_body_part(tag: Optional[str], default: str = "eye") -> BodyPart:
    """Resolve a free-form body-part tag to a :class:`BodyPart`.

    Matching is case-insensitive; a missing or blank tag falls back to
    ``default``.
    """
    key = (tag or "").strip().lower() or default.strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return BodyPart(key)
    except ValueError:
        supported = ", ".join(part.value for part in BodyPart)
        raise UnsupportedBodyPartError(
            f"Unknown body part '{tag}'. Supported values: {supported}."
        ) from None


@dataclass(frozen=True)
class CareProfile:
    """Wording used by the recommendation templates for one body part."""

    subject: str  # "Your eyes appear healthy."
    verb: str
    routine: str
    professional: str
    hygiene_tip: str
    protective_tip: str
    gentle_tip: str


CARE_PROFILES: Dict[BodyPart, CareProfile] = {
    BodyPart.EYES: CareProfile(
        subject="eyes",
        verb="appear",
        routine="eye care",
        professional="an eye care professional",
        hygiene_tip="Stay hydrated and maintain good eye hygiene.",
        protective_tip="Avoid rubbing your eyes and use protective eyewear when needed.",
        gentle_tip="Use gentle eye care products and avoid irritants.",
    ),
    BodyPart.SKIN: CareProfile(
        subject="skin",
        verb="appears",
        routine="skin care",
        professional="a dermatologist",
        hygiene_tip="Stay hydrated and moisturize your skin daily.",
        protective_tip="Avoid scratching the area and use sunscreen when outdoors.",
        gentle_tip="Use gentle, fragrance-free skin products and avoid irritants.",
    ),
    BodyPart.TEETH: CareProfile(
        subject="teeth",
        verb="appear",
        routine="oral care",
        professional="a dentist",
        hygiene_tip="Brush twice daily and floss to maintain good oral hygiene.",
        protective_tip="Avoid very hot or cold foods and use a mouthguard when needed.",
        gentle_tip="Use a soft-bristled toothbrush and a fluoride rinse.",
    ),
    BodyPart.FACE: CareProfile(
        subject="face",
        verb="appears",
        routine="skin care",
        professional="a dermatologist",
        hygiene_tip="Stay hydrated and cleanse your face gently every day.",
        protective_tip="Avoid touching your face and use sunscreen when outdoors.",
        gentle_tip="Use gentle, non-comedogenic products and avoid irritants.",
    ),
    BodyPart.EARS: CareProfile(
        subject="ears",
        verb="appear",
        routine="ear care",
        professional="an ear, nose and throat specialist",
        hygiene_tip="Keep your ears dry and clean only the outer ear.",
        protective_tip="Avoid inserting objects into your ears and protect them from loud noise.",
        gentle_tip="Use warm compresses and avoid cotton swabs in the ear canal.",
    ),
    BodyPart.HAIR: CareProfile(
        subject="hair",
        verb="appears",
        routine="hair care",
        professional="a dermatologist",
        hygiene_tip="Stay hydrated and wash your scalp regularly with a mild shampoo.",
        protective_tip="Avoid harsh styling and protect your hair from heat damage.",
        gentle_tip="Use gentle hair products and avoid chemical treatments.",
    ),
    BodyPart.NAILS: CareProfile(
        subject="nails",
        verb="appear",
        routine="nail care",
        professional="a dermatologist",
        hygiene_tip="Keep your nails clean, dry and trimmed.",
        protective_tip="Avoid biting your nails and wear gloves for wet work.",
        gentle_tip="Use a gentle moisturizer on nails and cuticles and avoid harsh polish removers.",
    ),
}


def care_profile(body_part: BodyPart) -> CareProfile:
    return CARE_PROFILES[body_part]
