"""
Rule-based destination recommendations from a user's preferences.

Three independent rule groups each contribute at most one suggestion per
signal: budget ceiling (budget_range.max), activity types, and travel
style tags. Results are sorted by match descending and capped at four.
No ranking model, no I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from services.api.preferences.types import UserPreferences

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 4


@dataclass(frozen=True)
class Recommendation:
    id: str
    destination: str
    reason: str
    match: int
    """Percentage match, 0-100."""
    highlights: tuple[str, ...] = field(default_factory=tuple)
    estimated_budget: int | None = None
    best_time_to_visit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "destination": self.destination,
            "reason": self.reason,
            "match": self.match,
            "highlights": list(self.highlights),
            "estimatedBudget": self.estimated_budget,
            "bestTimeToVisit": self.best_time_to_visit,
        }


# Budget ceilings, checked in order; the last entry has no ceiling.
_BUDGET_TIERS: tuple[tuple[float | None, Recommendation], ...] = (
    (1500, Recommendation(
        id="budget-1",
        destination="Mexico City, Mexico",
        reason="Perfect for your budget",
        match=85,
        highlights=("Amazing street food", "Rich culture", "Great value"),
        estimated_budget=800,
        best_time_to_visit="Oct - May",
    )),
    (3000, Recommendation(
        id="budget-2",
        destination="Lisbon, Portugal",
        reason="European charm within budget",
        match=78,
        highlights=("Historic trams", "Coastal views", "Vibrant nightlife"),
        estimated_budget=2200,
        best_time_to_visit="Mar - Oct",
    )),
    (None, Recommendation(
        id="budget-3",
        destination="Tokyo, Japan",
        reason="Premium experiences await",
        match=82,
        highlights=("Michelin dining", "Luxury hotels", "Unique culture"),
        estimated_budget=4500,
        best_time_to_visit="Apr - May, Oct - Nov",
    )),
)

_ACTIVITY_RECOMMENDATIONS: dict[str, Recommendation] = {
    "adventure": Recommendation(
        id="activity-1",
        destination="Queenstown, New Zealand",
        reason="Adventure capital matches your style",
        match=92,
        highlights=("Bungee jumping", "Hiking trails", "Stunning landscapes"),
        best_time_to_visit="Dec - Feb",
    ),
    "relaxation": Recommendation(
        id="activity-2",
        destination="Bali, Indonesia",
        reason="Ultimate relaxation destination",
        match=88,
        highlights=("Beach resorts", "Spa retreats", "Yoga centers"),
        best_time_to_visit="Apr - Oct",
    ),
    "cultural": Recommendation(
        id="activity-3",
        destination="Istanbul, Turkey",
        reason="Rich cultural heritage",
        match=86,
        highlights=("Historic sites", "Grand Bazaar", "Diverse cuisine"),
        best_time_to_visit="Apr - May, Sep - Nov",
    ),
}

# First matching style wins.
_STYLE_RECOMMENDATIONS: tuple[tuple[str, Recommendation], ...] = (
    ("luxury", Recommendation(
        id="style-1",
        destination="Dubai, UAE",
        reason="Luxury travel paradise",
        match=90,
        highlights=("5-star hotels", "World-class shopping", "Fine dining"),
        estimated_budget=5000,
        best_time_to_visit="Nov - Mar",
    )),
    ("budget", Recommendation(
        id="style-2",
        destination="Bangkok, Thailand",
        reason="Budget-friendly adventure",
        match=87,
        highlights=("Street markets", "Affordable luxury", "Vibrant culture"),
        estimated_budget=1200,
        best_time_to_visit="Nov - Feb",
    )),
)


def _budget_recommendation(ceiling: float) -> Recommendation:
    for limit, rec in _BUDGET_TIERS:
        if limit is None or ceiling <= limit:
            return rec
    return _BUDGET_TIERS[-1][1]


def recommend_destinations(preferences: UserPreferences | None) -> list[Recommendation]:
    if preferences is None:
        return []

    recs: list[Recommendation] = []

    if preferences.budget_range.max:
        recs.append(_budget_recommendation(preferences.budget_range.max))

    activity_names = {a.type.lower() for a in preferences.activity_types}
    for name, rec in _ACTIVITY_RECOMMENDATIONS.items():
        if name in activity_names:
            recs.append(rec)

    for style, rec in _STYLE_RECOMMENDATIONS:
        if style in preferences.travel_style:
            recs.append(rec)
            break

    # sorted() is stable, so equal matches keep rule order
    ranked = sorted(recs, key=lambda r: r.match, reverse=True)[:MAX_RECOMMENDATIONS]
    logger.debug(
        "recommend_destinations: user=%s candidates=%d returned=%d",
        preferences.user_id,
        len(recs),
        len(ranked),
    )
    return ranked
