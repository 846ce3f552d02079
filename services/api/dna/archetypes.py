"""
Travel archetypes — the ten labels a DNA profile can be classified into,
with their static display definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TravelArchetype(str, Enum):
    URBAN_EXPLORER = "urban_explorer"
    BEACH_LOUNGER = "beach_lounger"
    CULTURE_SEEKER = "culture_seeker"
    ADVENTURE_JUNKIE = "adventure_junkie"
    LUXURY_TRAVELER = "luxury_traveler"
    FOODIE_WANDERER = "foodie_wanderer"
    SOCIAL_BUTTERFLY = "social_butterfly"
    NATURE_LOVER = "nature_lover"
    BUDGET_BACKPACKER = "budget_backpacker"
    DIGITAL_NOMAD = "digital_nomad"


@dataclass(frozen=True)
class ArchetypeDefinition:
    label: str
    icon: str
    description: str
    primary_traits: tuple[str, ...]
    """DNA dimension names that characterize the archetype."""
    color_theme: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "icon": self.icon,
            "description": self.description,
            "primaryTraits": list(self.primary_traits),
            "colorTheme": self.color_theme,
        }


ARCHETYPE_DEFINITIONS: dict[TravelArchetype, ArchetypeDefinition] = {
    TravelArchetype.URBAN_EXPLORER: ArchetypeDefinition(
        label="Urban Explorer",
        icon="🏙️",
        description="Thrives in bustling cities, discovering hidden gems and local culture",
        primary_traits=("culture", "social", "culinary"),
        color_theme="from-purple-500 to-blue-500",
    ),
    TravelArchetype.BEACH_LOUNGER: ArchetypeDefinition(
        label="Beach Lounger",
        icon="🏖️",
        description="Seeks sun, sand, and serenity by the ocean",
        primary_traits=("relaxation", "luxury"),
        color_theme="from-cyan-400 to-blue-400",
    ),
    TravelArchetype.CULTURE_SEEKER: ArchetypeDefinition(
        label="Culture Seeker",
        icon="🎭",
        description="Immerses in local traditions, history, and arts",
        primary_traits=("culture", "culinary"),
        color_theme="from-amber-500 to-orange-500",
    ),
    TravelArchetype.ADVENTURE_JUNKIE: ArchetypeDefinition(
        label="Adventure Junkie",
        icon="🏔️",
        description="Craves adrenaline and outdoor challenges",
        primary_traits=("adventure", "social"),
        color_theme="from-green-500 to-emerald-500",
    ),
    TravelArchetype.LUXURY_TRAVELER: ArchetypeDefinition(
        label="Luxury Traveler",
        icon="💎",
        description="Enjoys the finest experiences and accommodations",
        primary_traits=("luxury", "relaxation", "culinary"),
        color_theme="from-purple-600 to-pink-600",
    ),
    TravelArchetype.FOODIE_WANDERER: ArchetypeDefinition(
        label="Foodie Wanderer",
        icon="🍜",
        description="Travels for taste, seeking culinary adventures",
        primary_traits=("culinary", "culture"),
        color_theme="from-red-500 to-orange-500",
    ),
    TravelArchetype.SOCIAL_BUTTERFLY: ArchetypeDefinition(
        label="Social Butterfly",
        icon="🦋",
        description="Connects with people and thrives in group settings",
        primary_traits=("social", "culture"),
        color_theme="from-pink-500 to-purple-500",
    ),
    TravelArchetype.NATURE_LOVER: ArchetypeDefinition(
        label="Nature Lover",
        icon="🌲",
        description="Finds peace in natural landscapes and wildlife",
        primary_traits=("adventure", "relaxation"),
        color_theme="from-green-600 to-teal-600",
    ),
    TravelArchetype.BUDGET_BACKPACKER: ArchetypeDefinition(
        label="Budget Backpacker",
        icon="🎒",
        description="Masters the art of exploring on a shoestring budget",
        primary_traits=("adventure", "social"),
        color_theme="from-yellow-500 to-green-500",
    ),
    # Never produced by classify_archetype(); kept so stored labels still render.
    TravelArchetype.DIGITAL_NOMAD: ArchetypeDefinition(
        label="Digital Nomad",
        icon="💻",
        description="Blends work and travel seamlessly",
        primary_traits=("culture", "social"),
        color_theme="from-indigo-500 to-purple-500",
    ),
}


def get_definition(archetype: TravelArchetype | str) -> ArchetypeDefinition:
    """Definition for an archetype; unknown labels fall back to urban_explorer."""
    try:
        return ARCHETYPE_DEFINITIONS[TravelArchetype(archetype)]
    except ValueError:
        return ARCHETYPE_DEFINITIONS[TravelArchetype.URBAN_EXPLORER]
