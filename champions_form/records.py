"""
Play records as exported by the play-logging app, and the JSON loader.

Export format (one JSON array):
    [
      {
        "Id": "...", "Date": "2024-03-01", "Villain": "Rhino",
        "Difficulty": "S1E1", "Multiplayer": false, "True_Solo": true,
        "Heroes": [{"Hero": "Spider Man", "Aspect": "Justice", "Win": 1}],
        "Modular_Sets": ["Bomb Scare"]
      },
      ...
    ]
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime

from champions_form.errors import PlayDataError

logger = logging.getLogger("champions_form")

MAX_HEROES = 4


@dataclass(frozen=True)
class HeroPlay:
    hero: str
    aspect: str
    win: int

    @property
    def won(self) -> bool:
        return self.win == 1


@dataclass(frozen=True)
class Play:
    id: str
    date: date
    villain: str
    difficulty: str
    multiplayer: bool
    true_solo: bool
    heroes: tuple
    modular_sets: tuple

    @property
    def first_hero(self) -> HeroPlay:
        return self.heroes[0]

    @property
    def has_additional_heroes(self) -> bool:
        """True when the extra heroes are entered on the form (not multiplayer)."""
        return len(self.heroes) > 1 and not self.multiplayer

    def describe(self) -> str:
        return f"{self.id} - {self.date.isoformat()} - {self.villain}"


def parse_date(value) -> date:
    """Parse an ISO calendar date ("YYYY-MM-DD").

    A full ISO timestamp ("2024-03-01T18:22:00Z") is accepted and its time
    part dropped; anything else after the date is an error.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO date string, got {value!r}")
    text = value.strip()
    if len(text) > 10 and text[10] in "T ":
        # fromisoformat() only takes a "Z" suffix from 3.11 on
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def _parse_flag(raw: dict, key: str, play_id: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise PlayDataError(f"Play {play_id}: {key} must be true or false, got {value!r}")
    return value


def _parse_hero(raw, play_id: str) -> HeroPlay:
    if not isinstance(raw, dict):
        raise PlayDataError(f"Play {play_id}: hero entry must be an object, got {raw!r}")
    try:
        hero = str(raw["Hero"])
        aspect = str(raw["Aspect"])
        win = raw["Win"]
    except KeyError as e:
        raise PlayDataError(f"Play {play_id}: hero entry missing field {e}") from e
    if isinstance(win, bool) or win not in (0, 1):
        raise PlayDataError(f"Play {play_id}: Win must be 0 or 1, got {win!r}")
    return HeroPlay(hero=hero, aspect=aspect, win=int(win))


def play_from_dict(raw: dict) -> Play:
    """Build a Play from one exported JSON object, enforcing record invariants."""
    if not isinstance(raw, dict):
        raise PlayDataError(f"Play entry must be an object, got {type(raw).__name__}")
    play_id = str(raw.get("Id", "<no id>"))
    try:
        played_on = parse_date(raw["Date"])
        villain = str(raw["Villain"])
        difficulty = str(raw["Difficulty"])
        raw_heroes = raw["Heroes"]
    except KeyError as e:
        raise PlayDataError(f"Play {play_id}: missing field {e}") from e
    except ValueError as e:
        raise PlayDataError(f"Play {play_id}: invalid Date ({e})") from e

    if not isinstance(raw_heroes, list) or not raw_heroes:
        raise PlayDataError(f"Play {play_id}: Heroes must be a non-empty list")
    if len(raw_heroes) > MAX_HEROES:
        raise PlayDataError(f"Play {play_id}: at most {MAX_HEROES} heroes, got {len(raw_heroes)}")

    modular_sets = raw.get("Modular_Sets") or []
    if not isinstance(modular_sets, list):
        raise PlayDataError(f"Play {play_id}: Modular_Sets must be a list")

    return Play(
        id=play_id,
        date=played_on,
        villain=villain,
        difficulty=difficulty,
        multiplayer=_parse_flag(raw, "Multiplayer", play_id),
        true_solo=_parse_flag(raw, "True_Solo", play_id),
        heroes=tuple(_parse_hero(h, play_id) for h in raw_heroes),
        modular_sets=tuple(str(m) for m in modular_sets),
    )


def load_plays(json_path: str) -> list:
    """Read the play export at json_path and return its plays in file order."""
    try:
        with open(json_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise PlayDataError(f"Cannot read play file {json_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise PlayDataError(f"Play file {json_path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise PlayDataError(f"Play file {json_path} must contain a JSON array")

    plays = [play_from_dict(raw) for raw in data]
    logger.info(f"Loaded {len(plays)} plays from {json_path}")
    return plays
