from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from healthscan.core.errors import NoPredictionsError
from healthscan.schemas.prediction import Prediction
from healthscan.schemas.verdict import HealthStatus, HealthVerdict, Urgency
from healthscan.services.body_parts import BodyPart, care_profile

_HEALTHY = (HealthStatus.HEALTHY, Urgency.LOW)
_ISSUE = (HealthStatus.ISSUE_DETECTED, Urgency.HIGH)
_ATTENTION = (HealthStatus.NEEDS_ATTENTION, Urgency.MEDIUM)

LABEL_VERDICTS: Dict[str, Tuple[HealthStatus, Urgency]] = {
    # Eye model classes
    "healthy_eye": _HEALTHY,
    "dry_eye": _ATTENTION,
    "conjunctivitis": _ISSUE,
    "cataract": _ISSUE,
    "glaucoma": _ISSUE,
    "cornea_ulcer": _ISSUE,
    # Skin / heuristic classes
    "healthy_skin": _HEALTHY,
    "mild_irritation": _ATTENTION,
    "needs_attention": _ATTENTION,
    # Generic synonyms
    "normal": _HEALTHY,
    "clear": _HEALTHY,
    "healthy": _HEALTHY,
    "issue": _ISSUE,
    "problem": _ISSUE,
    "abnormal": _ISSUE,
    "severe": _ISSUE,
    "attention": _ATTENTION,
    "monitor": _ATTENTION,
}

# Never claim "healthy" for a label we do not know.
DEFAULT_VERDICT = _ATTENTION

FOLLOW_UP_BELOW = 0.8
ESCALATE_ABOVE = 0.7


def get_top_prediction(predictions: Sequence[Prediction]) -> Prediction:
    """Return the highest-probability prediction; the first one wins ties."""
    if not predictions:
        raise NoPredictionsError("No predictions available")

    top = predictions[0]
    for current in predictions[1:]:
        if current.probability > top.probability:
            top = current
    return top


def map_label(class_name: str) -> Tuple[HealthStatus, Urgency]:
    return LABEL_VERDICTS.get(class_name.strip().lower(), DEFAULT_VERDICT)


def _percent(probability: float) -> int:
    # Half-up: 0.925 -> 93.
    return int(math.floor(probability * 100 + 0.5))


def describe_condition(class_name: str, probability: float) -> str:
    # Every underscore, not just the first: "eye_class_9" -> "eye class 9".
    label = class_name.replace("_", " ")
    return f"Detected: {label} ({_percent(probability)}% confidence)"


def build_recommendations(
    status: HealthStatus,
    confidence: float,
    body_part: BodyPart = BodyPart.EYES,
) -> List[str]:
    """Produce the ordered care recommendations for a verdict.

    The output depends only on the arguments, so identical inputs always give
    identical lists.
    """
    care = care_profile(body_part)
    recommendations: List[str] = []

    if status == HealthStatus.HEALTHY:
        recommendations.append(
            f"✅ Your {care.subject} {care.verb} healthy. "
            f"Continue with your regular {care.routine} routine."
        )
        if confidence < FOLLOW_UP_BELOW:
            recommendations.append("📋 Consider a follow-up scan for confirmation.")
        recommendations.append(f"💧 {care.hygiene_tip}")
    elif status == HealthStatus.ISSUE_DETECTED:
        recommendations.append(f"⚠️ Consider consulting {care.professional} for evaluation.")
        recommendations.append(f"📸 Monitor your {care.subject} for any changes or progression.")
        if confidence > ESCALATE_ABOVE:
            recommendations.append(
                "🔴 This detection has high confidence and may require immediate attention."
            )
        recommendations.append(f"🧴 {care.protective_tip}")
    else:
        recommendations.append(
            f"👀 Monitor your {care.subject} closely and consider a follow-up scan."
        )
        recommendations.append(f"🏥 If symptoms persist, consult {care.professional}.")
        recommendations.append(f"🧴 {care.gentle_tip}")

    return recommendations


def format_prediction(
    prediction: Prediction,
    body_part: BodyPart = BodyPart.EYES,
) -> HealthVerdict:
    """Map a single prediction onto the structured health verdict."""
    status, urgency = map_label(prediction.class_name)
    return HealthVerdict(
        status=status,
        condition=describe_condition(prediction.class_name, prediction.probability),
        confidence=prediction.probability,
        recommendations=build_recommendations(status, prediction.probability, body_part),
        urgency=urgency,
    )


def analyze_predictions(
    predictions: Sequence[Prediction],
    body_part: BodyPart = BodyPart.EYES,
) -> HealthVerdict:
    return format_prediction(get_top_prediction(predictions), body_part)
