"""
Travel DNA scoring.

Covers:
- per-dimension scoring rules and their fallbacks
- every dimension clamped to [0, 100]
- archetype rules in order, thresholds, and the urban_explorer fallback
- completeness: empty -> 0, everything -> 100
- stats labels, gradient, update_dna bookkeeping
- the luxury / resort / relaxed profile end to end
"""

import pytest

from services.api.dna.archetypes import TravelArchetype, get_definition
from services.api.dna.scoring import (
    DIMENSIONS,
    DNAScores,
    build_profile,
    classify_archetype,
    compute_completeness,
    compute_scores,
    dna_gradient,
    travel_stats,
    update_dna,
)
from services.api.preferences.normalize import normalize_preferences
from services.api.preferences.types import UserPreferences
from services.api.tests.conftest import make_preferences

NOW = "2025-06-01T12:00:00+00:00"

FULL_PROFILE = {
    "budgetType": "mid_range",
    "accommodationStyle": ["hotel"],
    "pacePreference": "moderate",
    "preferredCuisines": ["Thai"],
    "frequentDestinations": ["Lisbon"],
    "dietaryRestrictions": ["vegetarian"],
    "travelStyle": ["cultural"],
    "activityTypes": ["museum"],
    "quizCompleted": True,
}


# ---------------------------------------------------------------------------
# compute_scores
# ---------------------------------------------------------------------------

class TestComputeScores:
    def test_empty_input_uses_fallbacks(self):
        scores = compute_scores({})
        assert scores == DNAScores(adventure=0, culture=0, luxury=0, social=30, relaxation=40, culinary=30)

    def test_stored_defaults_give_mid_range_luxury(self):
        assert compute_scores(UserPreferences(user_id="u1")).luxury == 40

    def test_adventure_activities_and_pace(self):
        scores = compute_scores({"activityTypes": ["hiking", "extreme sports"], "pace": "packed"})
        assert scores.adventure == 80
        assert scores.relaxation == 20

    def test_moderate_pace_adds_adventure(self):
        scores = compute_scores({"pace": "moderate"})
        assert scores.adventure == 15
        assert scores.relaxation == 50

    def test_culture_capped(self):
        scores = compute_scores(
            {
                "activityTypes": ["museum", "art gallery", "history tour"],
                "travelStyle": ["cultural"],
                "frequentDestinations": ["Rome", "Kyoto"],
            }
        )
        assert scores.culture == 100

    def test_destinations_bonus_capped_at_thirty(self):
        scores = compute_scores({"frequentDestinations": [f"City {i}" for i in range(10)]})
        assert scores.culture == 30

    def test_social_from_style_and_hostels(self):
        assert compute_scores({"travelStyle": ["group"]}).social == 60
        assert compute_scores({"accommodationStyle": ["hostel"]}).social == 30
        assert compute_scores({"travelStyle": ["group", "social"], "accommodationStyle": ["hostel"]}).social == 100

    def test_culinary(self):
        assert compute_scores({"preferredCuisines": ["Thai", "Greek"]}).culinary == 60
        assert compute_scores({"dietaryRestrictions": ["vegan"]}).culinary == 20
        many = compute_scores({"preferredCuisines": [f"c{i}" for i in range(8)], "dietaryRestrictions": ["vegan"]})
        assert many.culinary == 100

    def test_luxury_tiers(self):
        assert compute_scores({"budgetType": "shoestring"}).luxury == 10
        assert compute_scores({"budgetType": "ultra_luxury", "accommodationStyle": ["hotel"]}).luxury == 100

    @pytest.mark.parametrize(
        "raw",
        [
            {},
            {"budgetType": "ultra_luxury", "accommodationStyle": ["resort", "hotel", "hostel"]},
            {"travelStyle": ["group", "social", "cultural"], "pace": "packed"},
            {"activityTypes": ["hiking"] * 12 + ["museum"] * 12, "frequentDestinations": ["x"] * 40},
            {"preferredCuisines": ["a"] * 50, "dietaryRestrictions": ["b"] * 5},
        ],
    )
    def test_every_dimension_within_bounds(self, raw):
        scores = compute_scores(raw).to_dict()
        assert set(scores) == set(DIMENSIONS)
        assert all(0 <= value <= 100 for value in scores.values())


# ---------------------------------------------------------------------------
# classify_archetype
# ---------------------------------------------------------------------------

class TestClassifyArchetype:
    @pytest.mark.parametrize(
        "scores, expected",
        [
            (DNAScores(adventure=90, culture=80), TravelArchetype.ADVENTURE_JUNKIE),
            (DNAScores(culture=90, culinary=80), TravelArchetype.CULTURE_SEEKER),
            (DNAScores(luxury=90, relaxation=80), TravelArchetype.LUXURY_TRAVELER),
            (DNAScores(relaxation=90, social=50, luxury=30), TravelArchetype.BEACH_LOUNGER),
            (DNAScores(culinary=90, social=50), TravelArchetype.FOODIE_WANDERER),
            (DNAScores(social=90, culinary=50), TravelArchetype.SOCIAL_BUTTERFLY),
            (DNAScores(adventure=90, social=50, luxury=10), TravelArchetype.BUDGET_BACKPACKER),
            (DNAScores(culture=90, social=80, luxury=50), TravelArchetype.URBAN_EXPLORER),
            (DNAScores(adventure=90, relaxation=80, luxury=50), TravelArchetype.NATURE_LOVER),
        ],
    )
    def test_pair_and_primary_rules(self, scores, expected):
        assert classify_archetype(scores) is expected

    def test_luxury_threshold(self):
        scores = DNAScores(relaxation=95, luxury=75)
        assert classify_archetype(scores) is TravelArchetype.LUXURY_TRAVELER

    def test_culture_threshold(self):
        scores = DNAScores(culture=90, adventure=80)
        assert classify_archetype(scores) is TravelArchetype.CULTURE_SEEKER

    def test_adventure_threshold(self):
        scores = DNAScores(adventure=90, culinary=60, luxury=50)
        assert classify_archetype(scores) is TravelArchetype.ADVENTURE_JUNKIE

    def test_fallback_urban_explorer(self):
        scores = DNAScores(relaxation=50, luxury=45)
        assert classify_archetype(scores) is TravelArchetype.URBAN_EXPLORER

    def test_ties_keep_dimension_order(self):
        scores = DNAScores(culture=50, culinary=50)
        assert scores.ranked()[:2] == [("culture", 50), ("culinary", 50)]
        assert classify_archetype(scores) is TravelArchetype.CULTURE_SEEKER

    def test_deterministic(self):
        scores = compute_scores(make_preferences())
        assert classify_archetype(scores) is classify_archetype(scores)

    def test_digital_nomad_definition_exists(self):
        assert get_definition(TravelArchetype.DIGITAL_NOMAD).label == "Digital Nomad"

    def test_unknown_label_falls_back(self):
        assert get_definition("space_tourist") == get_definition(TravelArchetype.URBAN_EXPLORER)


# ---------------------------------------------------------------------------
# compute_completeness
# ---------------------------------------------------------------------------

class TestCompleteness:
    def test_empty_input_is_zero(self):
        assert compute_completeness({}) == 0

    def test_every_weighted_field_is_hundred(self):
        assert compute_completeness(FULL_PROFILE) == 100

    def test_stored_defaults_count_budget_type(self):
        assert compute_completeness(UserPreferences(user_id="u1")) == 15

    def test_partial_profile(self):
        assert compute_completeness(make_preferences()) == 40

    def test_quiz_not_completed_does_not_count(self):
        assert compute_completeness({**FULL_PROFILE, "quizCompleted": False}) == 85


# ---------------------------------------------------------------------------
# Stats / gradient
# ---------------------------------------------------------------------------

class TestTravelStats:
    def test_labels(self):
        stats = travel_stats({"budgetType": "mid_range", "pace": "packed", "preferredCuisines": ["Thai", "Greek"]})
        assert stats.preferred_budget == "Mid-range"
        assert stats.travel_pace == "Fast-paced"
        assert stats.cuisines_tried == 2

    def test_unset_fields(self):
        stats = travel_stats({})
        assert stats.preferred_budget == "Not set"
        assert stats.travel_pace == "Not set"
        assert stats.trips_analyzed == 0

    def test_to_dict_is_camel_case(self):
        data = travel_stats({"frequentDestinations": ["Rome"], "totalTripsAnalyzed": 3}).to_dict()
        assert data["destinationsVisited"] == 1
        assert data["tripsAnalyzed"] == 3


class TestGradient:
    def test_top_two_dimensions(self):
        scores = DNAScores(relaxation=100, luxury=90)
        assert dna_gradient(scores) == "from-cyan-500 to-pink-500"


# ---------------------------------------------------------------------------
# update_dna / build_profile
# ---------------------------------------------------------------------------

class TestUpdateDna:
    def test_fields_recomputed(self):
        prefs = normalize_preferences(make_preferences(), user_id="u1")
        updated = update_dna(prefs, now=NOW)
        assert updated.travel_archetype == "luxury_traveler"
        assert updated.dna_scores["relaxation"] == 100
        assert updated.dna_completeness == compute_completeness(prefs)
        assert updated.dna_created_at == NOW
        assert updated.dna_updated_at == NOW
        assert prefs.dna_scores is None

    def test_created_at_preserved(self):
        prefs = UserPreferences(user_id="u1", dna_created_at="2024-01-01T00:00:00+00:00")
        updated = update_dna(prefs, now=NOW)
        assert updated.dna_created_at == "2024-01-01T00:00:00+00:00"
        assert updated.dna_updated_at == NOW


class TestLuxuryResortScenario:
    def test_end_to_end(self):
        scores = compute_scores(make_preferences())
        assert scores.luxury >= 90
        assert scores.relaxation >= 90
        assert classify_archetype(scores) is TravelArchetype.LUXURY_TRAVELER

    def test_build_profile(self):
        profile = build_profile(make_preferences())
        assert profile["archetype"] == "luxury_traveler"
        assert profile["definition"]["label"] == "Luxury Traveler"
        assert profile["gradient"] == "from-cyan-500 to-pink-500"
        assert profile["stats"]["preferredBudget"] == "Luxury"
        assert profile["stats"]["travelPace"] == "Relaxed"
        assert profile["completeness"] == 40
