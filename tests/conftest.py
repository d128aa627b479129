from __future__ import annotations

import re

import pytest
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from champions_form.records import play_from_dict


HERO_LABELS = [
    "Spider-Man (Peter Parker)",
    "Spider-Man (Miles Morales)",
    "Captain Marvel",
    "Black Panther (T'Challa)",
    "Iron Man",
    "She-Hulk",
    "Ant-Man",
    "Adam Warlock",
    "Spider-Woman",
]
ASPECT_LABELS = ["Aggression", "Justice", "Leadership", "Protection", "Pool"]
DUAL_ASPECT_LABELS = [
    "Aggression and Justice",
    "Aggression and Leadership",
    "Aggression and Protection",
    "Justice and Leadership",
    "Justice and Protection",
    "Leadership and Protection",
    "Aggression and Pool",
    "Justice and Pool",
    "Leadership and Pool",
    "Pool and Protection",
]
VILLAIN_LABELS = [
    "Rhino",
    "Klaw",
    "Ultron",
    "Risky Business",
    "Mutagen Formula",
    "The Hood",
    "Wrecking Crew",
    "Ronan the Accuser",
]
MODULAR_LABELS = [
    "Bomb Scare",
    "Masters of Evil",
    "Under Attack",
    "Legions of Hydra",
    "The Doomsday Chair",
    "Goblin Gimmicks",
]
STANDARD_LABELS = [
    "Standard (Core Set)",
    "Standard II (The Hood scenario pack)",
    "Standard III (Age of Apocalypse campaign box)",
]
EXPERT_LABELS = [
    "None",
    "Expert (Core Set)",
    "Expert II (The Hood scenario pack)",
]
WRECKING_CREW_LABELS = [
    "Standard (version-A Villains)",
    "Expert (version-B Villains)",
    "Extreme (two-stage villains, A+B)",
    "Custom (a mix of A and B within one game)",
]
ORDINALS = {1: "second", 2: "third", 3: "fourth"}

HERO_QUESTION = "Which Hero did you play?"
ASPECT_QUESTION = "Which aspect did you play?"
VILLAIN_QUESTION = "Which scenario did you play?"
WIN_QUESTION = "Did you win?"
STANDARD_QUESTION = "Which Standard set did you use?"
EXPERT_QUESTION = "Which Expert set did you use?"
HEROIC_QUESTION = "Heroic mode level"
SKIRMISH_QUESTION = "Skirmish mode level"
CAMPAIGN_QUESTION = "Were you playing in campaign mode?"


# ── Fake form ─────────────────────────────────────────────────────────────

def _matches(label: str, name, exact: bool) -> bool:
    if name is None:
        return True
    if isinstance(name, re.Pattern):
        return bool(name.search(label))
    if exact:
        return label == name
    return name.lower() in label.lower()


class Section:
    """One page of the fake form, described by its accessible elements."""

    def __init__(self, heading, radios=None, checkboxes=(), buttons=("Next",)):
        self.heading = heading
        self.elements = [{"role": "heading", "name": heading}]
        for group, labels in (radios or {}).items():
            self.elements.append({"role": "radiogroup", "name": group})
            for label in labels:
                self.elements.append({"role": "radio", "name": label, "group": group})
        for label in checkboxes:
            self.elements.append({"role": "checkbox", "name": label})
        for label in buttons:
            self.elements.append({"role": "button", "name": label})

    def __repr__(self):
        return f"Section({self.heading!r})"


class FakeLocator:
    def __init__(self, page, elements):
        self._page = page
        self._elements = list(elements)

    def count(self) -> int:
        return len(self._elements)

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._page, self._elements[:1])

    def click(self, **kwargs) -> None:
        if not self._elements:
            raise PlaywrightTimeoutError("locator.click: Timeout 10000ms exceeded.")
        if len(self._elements) > 1:
            raise PlaywrightError(
                f"locator.click: Error: strict mode violation: resolved to {len(self._elements)} elements"
            )
        self._page._click(self._elements[0])

    def text_content(self):
        return self._elements[0]["name"] if self._elements else None

    def get_by_label(self, text, exact=False) -> "FakeLocator":
        return self._scoped("radio", text, exact)

    def get_by_role(self, role, name=None, exact=False) -> "FakeLocator":
        return self._scoped(role, name, exact)

    def _scoped(self, role, name, exact) -> "FakeLocator":
        groups = {e["name"] for e in self._elements if e["role"] == "radiogroup"}
        return FakeLocator(self._page, [
            e for e in self._page.current_elements()
            if e["role"] == role and e.get("group") in groups and _matches(e["name"], name, exact)
        ])


class FakeFormPage:
    """Scripted stand-in for a Playwright Page showing the play-log form.

    ``sections`` are the pages the form shows for the play being entered;
    "Next" advances one section, "Submit" records the submission.
    """

    def __init__(self, sections=(), *, goto_failures: int = 0):
        self.sections = list(sections)
        self.goto_failures = goto_failures
        self.index = None
        self.url = "about:blank"
        self.goto_calls = 0
        self.selections: list = []
        self.checked: list = []
        self.submissions = 0
        self.closed = False
        self.default_timeout = None

    # navigation
    def goto(self, url, timeout=None, **kwargs):
        self.goto_calls += 1
        if self.goto_failures > 0:
            self.goto_failures -= 1
            raise PlaywrightTimeoutError(f"page.goto: Timeout {timeout}ms exceeded.")
        self.url = url
        self.index = 0
        self.selections = []
        self.checked = []

    def wait_for_load_state(self, state=None, timeout=None):
        pass

    def wait_for_timeout(self, ms):
        pass

    def set_default_timeout(self, ms):
        self.default_timeout = ms

    def is_closed(self) -> bool:
        return self.closed

    def close(self):
        self.closed = True

    def title(self) -> str:
        return "Play log"

    def screenshot(self, **kwargs):
        raise PlaywrightError("screenshot not available")

    def content(self) -> str:
        return "<html></html>"

    # queries
    def current_elements(self) -> list:
        if self.index is None or self.index >= len(self.sections):
            return []
        return self.sections[self.index].elements

    @property
    def current_heading(self):
        if self.index is None or self.index >= len(self.sections):
            return None
        return self.sections[self.index].heading

    def get_by_role(self, role, name=None, exact=False) -> FakeLocator:
        return FakeLocator(self, [
            e for e in self.current_elements()
            if e["role"] == role and _matches(e["name"], name, exact)
        ])

    def locator(self, selector) -> FakeLocator:
        return FakeLocator(self, [e for e in self.current_elements() if e["role"] == "heading"])

    def _click(self, element):
        role = element["role"]
        if role == "radio":
            self.selections.append((element["group"], element["name"]))
        elif role == "checkbox":
            self.checked.append(element["name"])
        elif role == "button" and element["name"] == "Next":
            self.index += 1
        elif role == "button" and element["name"] == "Submit":
            self.submissions += 1
            self.index += 1

    def answer(self, group):
        """Last label selected in a radio group, or None."""
        picked = [label for g, label in self.selections if g == group]
        return picked[-1] if picked else None


# ── Section builders ──────────────────────────────────────────────────────

def hero_section(heading="Hero"):
    return Section(heading, {HERO_QUESTION: HERO_LABELS})


def aspect_section(next_ordinal, aspects=ASPECT_LABELS, heading="Aspect"):
    radios = {}
    if aspects:
        radios[ASPECT_QUESTION] = aspects
    if next_ordinal:
        radios[f"Was there a {next_ordinal} Hero?"] = ["Yes", "No"]
    return Section(heading, radios)


def villain_section():
    return Section("Scenario", {VILLAIN_QUESTION: VILLAIN_LABELS})


def campaign_section():
    return Section("Campaign Scenarios", {
        CAMPAIGN_QUESTION: ["Yes", "No"],
        "Were you playing Expert Campaign mode?": ["Yes", "No"],
    })


def modular_section():
    return Section("Modular Encounter Sets", checkboxes=MODULAR_LABELS)


def difficulty_section(wrecking_crew=False):
    radios = {WIN_QUESTION: ["Yes", "No"]}
    if wrecking_crew:
        radios["Which difficulty did you play?"] = WRECKING_CREW_LABELS
    else:
        radios[STANDARD_QUESTION] = STANDARD_LABELS
        radios[EXPERT_QUESTION] = EXPERT_LABELS
    radios[HEROIC_QUESTION] = ["1", "2", "3", "4"]
    radios[SKIRMISH_QUESTION] = ["1", "2", "3", "4"]
    return Section("Game Difficulty", radios, buttons=("Back", "Submit"))


def form_for(play, *, campaign=False, modular=None, last_question=True):
    """Sections the real form shows for ``play``."""
    first = play.heroes[0].hero
    if first in ("Adam Warlock",):
        aspects = ()
    elif first in ("Spider-Woman", "Spider Woman"):
        aspects = DUAL_ASPECT_LABELS
    else:
        aspects = ASPECT_LABELS

    sections = [hero_section(), aspect_section("second", aspects)]
    if play.has_additional_heroes:
        for i in range(1, len(play.heroes)):
            next_ordinal = ORDINALS.get(i + 1)
            if i == len(play.heroes) - 1 and not last_question:
                next_ordinal = None
            sections.append(hero_section(f"{ORDINALS[i].title()} Hero"))
            sections.append(aspect_section(next_ordinal, heading=f"{ORDINALS[i].title()} Hero Aspect"))
    sections.append(villain_section())
    if campaign:
        sections.append(campaign_section())
    wrecking = play.villain == "Wrecking Crew"
    if modular is None:
        modular = not wrecking
    if modular:
        sections.append(modular_section())
    sections.append(difficulty_section(wrecking_crew=wrecking))
    return sections


# ── Play builders ─────────────────────────────────────────────────────────

def make_play(
    play_id="p1",
    date="2024-03-01",
    villain="Rhino",
    difficulty="S1E1",
    heroes=(("Captain Marvel", "Aggression", 1),),
    modular_sets=("Bomb Scare",),
    multiplayer=False,
    true_solo=True,
):
    return play_from_dict({
        "Id": play_id,
        "Date": date,
        "Villain": villain,
        "Difficulty": difficulty,
        "Multiplayer": multiplayer,
        "True_Solo": true_solo,
        "Heroes": [{"Hero": h, "Aspect": a, "Win": w} for h, a, w in heroes],
        "Modular_Sets": list(modular_sets),
    })


@pytest.fixture
def fast_config():
    """Config with every pause zeroed and diagnostics capture off."""
    return {
        "form_url": "https://forms.example.test/viewform",
        "navigation_timeout": 5_000,
        "default_timeout": 2_000,
        "settle_delay": 0,
        "nav_retry_delay": 0,
        "delay_after_success": 0,
        "delay_after_failure": 0,
        "recovery_pause": 0,
        "max_consecutive_failures": 3,
        "capture_diagnostics": False,
    }
