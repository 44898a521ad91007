"""Lead scoring - additive heuristic over the lead's own fields."""

from typing import Any, Optional

from src.utils.config import ScoreWeights


def _message_length(message: Optional[str]) -> int:
    return len(message) if message else 0


def score_lead(lead: Any, weights: Optional[ScoreWeights] = None) -> int:
    """
    Score a lead between 0 and ``weights.max_score``.

    Works on anything carrying the lead fields (a submission or a stored lead).
    Adding a signal never lowers the score.
    """
    weights = weights or ScoreWeights()
    score = 0

    if lead.name:
        score += weights.name
    if lead.phone_number:
        score += weights.phone
    if lead.email:
        score += weights.email

    length = _message_length(lead.message)
    if length > 50:
        score += weights.message_over_50
    if length > 100:
        score += weights.message_over_100

    budget = lead.estimated_budget
    if budget is not None:
        score += weights.budget
        if budget.min > 0:
            score += weights.budget_min
        if budget.max > 0:
            score += weights.budget_max

    location = lead.preferred_location
    if location is not None:
        score += weights.location
        if location.city:
            score += weights.location_city
        if location.state:
            score += weights.location_state

    score += weights.per_property_interest * len(lead.property_interests or [])
    score += weights.per_tag * len(lead.tags or [])

    return max(0, min(score, weights.max_score))
