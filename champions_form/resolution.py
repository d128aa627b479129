"""
Name and difficulty resolution: play-export values → form labels.

Everything here is a pure function of its arguments (the only side effect
is a warning log when a dual-aspect string cannot be mapped).
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from champions_form.tables import FormTables, DEFAULT_TABLES

logger = logging.getLogger("champions_form")

# Standard-set labels, highest version marker first
STANDARD_TIERS = (
    ("S3", "Standard III (Age of Apocalypse campaign box)", "Apocalypse-III"),
    ("S2", "Standard II (The Hood scenario pack)", "Hood-II"),
)
STANDARD_DEFAULT = ("Standard (Core Set)", "core")

EXPERT_TIERS = (
    ("E2", "Expert II (The Hood scenario pack)", "Hood-II"),
    ("E1", "Expert (Core Set)", "core"),
)
EXPERT_NONE_LABEL = "None"

HEROIC_CODE = "Heroic"
HEROIC_LEVEL = "1"  # only heroic level the export can express

WRECKING_CREW_STANDARD = "Standard (version-A Villains)"
WRECKING_CREW_EXPERT = "Expert (version-B Villains)"

_ORDINALS = {1: "second", 2: "third", 3: "fourth"}


@dataclass(frozen=True)
class DifficultySettings:
    """Form selections for the difficulty page.

    ``standard`` / ``expert`` hold the radio labels to click (``None`` when
    the question is left unanswered); the ``*_tier`` fields hold the short
    tier names used in logs.
    """

    standard: Optional[str] = None
    expert: Optional[str] = None
    heroic: str = ""
    skirmish: str = ""
    standard_tier: Optional[str] = None
    expert_tier: Optional[str] = None

    @property
    def is_heroic(self) -> bool:
        return bool(self.heroic)


def resolve_hero_name(name: str, tables: FormTables = DEFAULT_TABLES) -> str:
    """Map an exported hero name onto its form label (unchanged if unmapped)."""
    return tables.hero_names.get(name, name)


def resolve_villain_name(name: str, tables: FormTables = DEFAULT_TABLES) -> str:
    """Map an exported villain/scenario name onto its form label."""
    return tables.villain_names.get(name, name)


def map_dual_aspect(aspect: str) -> str:
    """
    Map a free-form two-aspect string (e.g. "Justice & aggression") onto the
    form's combined label ("Aggression and Justice").

    The form lists each pair in alphabetical order.  "basic" and "pool"
    both mean the Pool aspect.  Returns ``aspect`` unchanged, with a
    warning, when no recognised pair is present.
    """
    lower = aspect.lower()
    aggression = "aggression" in lower
    justice = "justice" in lower
    leadership = "leadership" in lower
    protection = "protection" in lower
    pool = "basic" in lower or "pool" in lower

    if aggression and justice:
        return "Aggression and Justice"
    if aggression and leadership:
        return "Aggression and Leadership"
    if aggression and protection:
        return "Aggression and Protection"
    if justice and leadership:
        return "Justice and Leadership"
    if justice and protection:
        return "Justice and Protection"
    if leadership and protection:
        return "Leadership and Protection"
    if aggression and pool:
        return "Aggression and Pool"
    if justice and pool:
        return "Justice and Pool"
    if leadership and pool:
        return "Leadership and Pool"
    if protection and pool:
        return "Pool and Protection"

    logger.warning(f"  Warning: Could not map dual aspects: {aspect}")
    return aspect


def parse_difficulty(code: str) -> DifficultySettings:
    """
    Decode a difficulty code ("S1E1", "S2", "S3E2", "Heroic") into form selections.

    The standard and expert tiers are picked independently by the highest
    version marker present; unrecognised tokens are ignored.
    """
    if code == HEROIC_CODE:
        return DifficultySettings(heroic=HEROIC_LEVEL)

    standard, standard_tier = STANDARD_DEFAULT
    for marker, label, tier in STANDARD_TIERS:
        if marker in code:
            standard, standard_tier = label, tier
            break

    expert, expert_tier = EXPERT_NONE_LABEL, "none"
    for marker, label, tier in EXPERT_TIERS:
        if marker in code:
            expert, expert_tier = label, tier
            break

    return DifficultySettings(
        standard=standard,
        expert=expert,
        standard_tier=standard_tier,
        expert_tier=expert_tier,
    )


def wrecking_crew_difficulty(code: str) -> str:
    """Difficulty label for the version-A/version-B villain scheme."""
    if "E" in code or "expert" in code.lower():
        return WRECKING_CREW_EXPERT
    return WRECKING_CREW_STANDARD


def hero_ordinal(index: int) -> str:
    """Ordinal used in the form's hero questions: 1 → "second", 2 → "third", 3 → "fourth"."""
    return _ORDINALS[index]


def hero_question_pattern(index: int) -> "re.Pattern":
    """Radiogroup name matching "Was there a <ordinal> Hero" for hero index ``index``."""
    return re.compile(rf"Was there a {hero_ordinal(index)} Hero", re.IGNORECASE)
