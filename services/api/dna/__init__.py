"""
services.api.dna — Travel DNA scoring, archetypes and recommendations.

Usage:
    from services.api.dna import compute_scores, classify_archetype

    scores = compute_scores(preferences)
    archetype = classify_archetype(scores)
"""

from __future__ import annotations

from services.api.dna.archetypes import (
    ARCHETYPE_DEFINITIONS,
    ArchetypeDefinition,
    TravelArchetype,
    get_definition,
)
from services.api.dna.recommendations import Recommendation, recommend_destinations
from services.api.dna.scoring import (
    DIMENSIONS,
    DNAScores,
    TravelStats,
    build_profile,
    classify_archetype,
    compute_completeness,
    compute_scores,
    dna_gradient,
    travel_stats,
    update_dna,
)

__all__ = [
    "ARCHETYPE_DEFINITIONS",
    "ArchetypeDefinition",
    "TravelArchetype",
    "get_definition",
    "Recommendation",
    "recommend_destinations",
    "DIMENSIONS",
    "DNAScores",
    "TravelStats",
    "build_profile",
    "classify_archetype",
    "compute_completeness",
    "compute_scores",
    "dna_gradient",
    "travel_stats",
    "update_dna",
]
