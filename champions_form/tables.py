"""
Static lookup tables mapping play-export names onto the form's labels.

The tables are bundled in a frozen ``FormTables`` value that is handed to
the filter and the navigator, so tests (or config.yaml) can substitute
their own tables without touching module state.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, FrozenSet


# Hero names as exported → radio labels on the form
HERO_NAME_MAPPINGS = {
    "Spider Man": "Spider-Man (Peter Parker)",
    "Spider-Man": "Spider-Man (Peter Parker)",
    "Black Panther": "Black Panther (T'Challa)",
    "Miles Morales": "Spider-Man (Miles Morales)",
    "Ant Man": "Ant-Man",
    "Star Lord": "Star-Lord",
    "Ghost Spider": "Ghost-Spider",
    "Iron Heart": "Ironheart",
    "Sp//der": "SP//dr",
    "Spider Ham": "Spider-Ham",
    "Spider Woman": "Spider-Woman",
}

# Villain / scenario names as exported → radio labels on the form
VILLAIN_NAME_MAPPINGS = {
    "The Collector - Infiltrate the Museum": "Infiltrate the Museum",
    "The Collector - Escape the Museum": "Escape the Museum",
    "The Hood Villain": "The Hood",
    "Norman Osborn": "Risky Business",
    "Green Goblin": "Mutagen Formula",
    "Green Goblin - Mutagen Formula": "Mutagen Formula",
    "Green Goblin - Risky Business": "Risky Business",
    "Amin Zola": "Zola",
    "Magneto Villain": "Magneto",
    "Nebula Villain": "Nebula",
    "Ronan": "Ronan the Accuser",
    "Sinister Six": "The Sinister Six",
    "Venom Villain": "Venom",
    "Magog": "MaGog",
    "Drang": "Brotherhood of Badoon",
}

# Scenarios with no modular encounter sets page
SCENARIOS_WITHOUT_MODULAR_PAGE = frozenset({"Wrecking Crew"})

# Scenarios whose difficulty page uses version-A/version-B villains
# instead of the Standard/Expert set questions
EXCEPTION_DIFFICULTY_SCENARIOS = frozenset({"Wrecking Crew"})

# Heroes that use every aspect: the form skips the aspect question
NO_ASPECT_HEROES = frozenset({"Adam Warlock"})

# Heroes that pick two aspects from a combined list
DUAL_ASPECT_HEROES = frozenset({"Spider-Woman"})

# Aspect value meaning "no aspect chosen"; the form requires one
NO_ASPECT_SENTINEL = "Basic"


@dataclass(frozen=True)
class FormTables:
    """Read-only lookup tables shared by every worker session."""

    hero_names: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(HERO_NAME_MAPPINGS))
    )
    villain_names: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(VILLAIN_NAME_MAPPINGS))
    )
    scenarios_without_modular_page: FrozenSet[str] = SCENARIOS_WITHOUT_MODULAR_PAGE
    exception_difficulty_scenarios: FrozenSet[str] = EXCEPTION_DIFFICULTY_SCENARIOS
    no_aspect_heroes: FrozenSet[str] = NO_ASPECT_HEROES
    dual_aspect_heroes: FrozenSet[str] = DUAL_ASPECT_HEROES
    no_aspect_sentinel: str = NO_ASPECT_SENTINEL

    @classmethod
    def from_config(cls, config: dict) -> "FormTables":
        """Build tables from a loaded config: mappings merge, sets replace."""
        hero_names = {**HERO_NAME_MAPPINGS, **(config.get("hero_name_mappings") or {})}
        villain_names = {**VILLAIN_NAME_MAPPINGS, **(config.get("villain_name_mappings") or {})}

        def _set(key: str, default: FrozenSet[str]) -> FrozenSet[str]:
            value = config.get(key)
            return default if value is None else frozenset(value)

        return cls(
            hero_names=MappingProxyType(hero_names),
            villain_names=MappingProxyType(villain_names),
            scenarios_without_modular_page=_set(
                "scenarios_without_modular_page", SCENARIOS_WITHOUT_MODULAR_PAGE
            ),
            exception_difficulty_scenarios=_set(
                "exception_difficulty_scenarios", EXCEPTION_DIFFICULTY_SCENARIOS
            ),
            no_aspect_heroes=_set("no_aspect_heroes", NO_ASPECT_HEROES),
            dual_aspect_heroes=_set("dual_aspect_heroes", DUAL_ASPECT_HEROES),
        )


DEFAULT_TABLES = FormTables()
