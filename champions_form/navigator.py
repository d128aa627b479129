"""
Form navigator: drives one browser page through the play-logging form for
one play at a time.

Page flow (every branch is decided by the play's content):

  LOAD → HERO → ASPECT ─┬─────────────→ VILLAIN → CAMPAIGN → MODULAR → DIFFICULTY → SUBMIT → DONE
                        └→ EXTRA_HERO ⟲ ┘

  - ASPECT        : skipped for all-aspect heroes, dual list for two-aspect heroes
  - EXTRA_HERO    : once per additional hero (solo multi-handed plays only)
  - CAMPAIGN      : only when the form actually shows the campaign question
  - MODULAR       : skipped for scenarios without modular sets
  - DIFFICULTY    : version-A/B villain scheme or Standard/Expert sets
  - SUBMIT        : no click in dry-run mode
Any step may move to FAILED.

submit_play() never raises: every fault becomes a failed play with a
logged cause.
"""

import re
import time
import logging
from playwright.sync_api import Page, Error as PlaywrightError

from champions_form.errors import PageMismatchError
from champions_form.records import Play
from champions_form.resolution import (
    parse_difficulty,
    map_dual_aspect,
    resolve_hero_name,
    resolve_villain_name,
    wrecking_crew_difficulty,
    hero_ordinal,
    hero_question_pattern,
)
from champions_form.tables import FormTables, DEFAULT_TABLES
from champions_form.utils import capture_diagnostics, FORM_URL, NAVIGATION_TIMEOUT

logger = logging.getLogger("champions_form")

# Google Forms waits: the form is a plain multi-section page, so
# networkidle is a reliable "section rendered" signal.
WAIT_STRATEGY = "networkidle"

# Question texts (radiogroup accessible names)
_CAMPAIGN_QUESTION = re.compile(r"Were you playing in campaign mode", re.IGNORECASE)
_WIN_QUESTION = re.compile(r"Did you win", re.IGNORECASE)
_HEROIC_QUESTION = re.compile(r"Heroic mode", re.IGNORECASE)

_HEADING_SELECTOR = 'h1, h2, h3, [role="heading"]'


class FormState:
    """States of the page traversal for one play."""

    LOAD        = "load"          # open the form and wait for it to settle
    HERO        = "hero"          # first hero
    ASPECT      = "aspect"        # first hero's aspect + "second hero?"
    EXTRA_HERO  = "extra_hero"    # second/third/fourth hero + aspect
    VILLAIN     = "villain"       # scenario
    CAMPAIGN    = "campaign"      # conditional campaign-mode page
    MODULAR     = "modular"       # modular encounter sets
    DIFFICULTY  = "difficulty"    # win/loss + difficulty
    SUBMIT      = "submit"
    DONE        = "done"
    FAILED      = "failed"

    TERMINAL = (DONE, FAILED)


class Traversal:
    """Everything the navigator knows about the play it is currently entering."""

    def __init__(self, play: Play):
        self.play = play
        self.state = FormState.LOAD
        self.hero_index = 0               # index into play.heroes for EXTRA_HERO
        self.campaign_page_seen = False
        self.error_msg = ""
        self.started_at = time.time()
        self.history: list = []           # [(state, message), ...]

    def transition(self, new_state: str, message: str = "") -> None:
        old = self.state
        self.state = new_state
        if new_state == FormState.FAILED:
            self.error_msg = message
        self.history.append((new_state, message or f"from {old}"))

    @property
    def visited(self) -> list:
        return [state for state, _ in self.history]

    @property
    def elapsed(self) -> float:
        return time.time() - self.started_at


class FormNavigator:
    """
    Fills the form for one play at a time on a single page.

    Args:
        page: Playwright page owned by the calling worker session.
        worker_id: Session number, used only for log attribution.
        tables: Lookup tables (name mappings and exception sets).
        dry_run: Fill every page but never click Submit.
        config: Loaded config dict (timeouts, form URL, diagnostics flag).
    """

    def __init__(
        self,
        page: Page,
        *,
        worker_id: int = 1,
        tables: FormTables = DEFAULT_TABLES,
        dry_run: bool = False,
        config: dict = None,
    ):
        config = config or {}
        self.page = page
        self.worker_id = worker_id
        self.tables = tables
        self.dry_run = dry_run
        self.form_url = config.get("form_url", FORM_URL)
        self.navigation_timeout = config.get("navigation_timeout", NAVIGATION_TIMEOUT)
        self.settle_delay = config.get("settle_delay", 500)
        self.nav_retry_delay = config.get("nav_retry_delay", 2_000)
        self.diagnostics = config.get("capture_diagnostics", True)
        self.last_traversal = None

        self._steps = {
            FormState.LOAD:       self.step_load,
            FormState.HERO:       self.step_hero,
            FormState.ASPECT:     self.step_aspect,
            FormState.EXTRA_HERO: self.step_extra_hero,
            FormState.VILLAIN:    self.step_villain,
            FormState.CAMPAIGN:   self.step_campaign,
            FormState.MODULAR:    self.step_modular,
            FormState.DIFFICULTY: self.step_difficulty,
            FormState.SUBMIT:     self.step_submit,
        }

    @property
    def prefix(self) -> str:
        return f"[Worker {self.worker_id}]"

    # ── Entry point ──────────────────────────────────────────────────

    def submit_play(self, play: Play) -> bool:
        """Enter one play on the form. Returns True once the form is submitted."""
        traversal = Traversal(play)
        self.last_traversal = traversal
        logger.info(f"{self.prefix} Submitting play {play.describe()}")

        try:
            while traversal.state not in FormState.TERMINAL:
                step = self._steps[traversal.state]
                traversal.transition(step(traversal))
        except PageMismatchError as e:
            traversal.transition(FormState.FAILED, str(e))
        except Exception as e:
            # Playwright errors/timeouts and anything unexpected: this play
            # fails, the worker moves on to the next one.
            traversal.transition(FormState.FAILED, f"{e.__class__.__name__}: {e}")

        if traversal.state == FormState.DONE:
            logger.debug(f"{self.prefix}   Play {play.id} done in {traversal.elapsed:.1f}s")
            return True

        logger.error(f"{self.prefix} Error submitting play {play.id}: {traversal.error_msg}")
        if self.diagnostics:
            capture_diagnostics(self.page, f"worker{self.worker_id}_play_{play.id}")
        return False

    # ── Page helpers ─────────────────────────────────────────────────

    def wait_for_page_ready(self) -> None:
        """Wait for the current form section to settle."""
        self.page.wait_for_load_state(WAIT_STRATEGY, timeout=self.navigation_timeout)
        # Small delay so the radio controls are interactive
        self.page.wait_for_timeout(self.settle_delay)

    def click_next(self) -> None:
        self.page.get_by_role("button", name="Next").click()
        self.wait_for_page_ready()

    def select_radio(self, name: str) -> bool:
        """Click the radio labelled ``name``; falls back to the first partial match.

        Returns True on an exact match.  With no match at all the partial
        click is still attempted, and times out.
        """
        exact = self.page.get_by_role("radio", name=name, exact=True)
        if exact.count() > 0:
            exact.click()
            return True
        self.page.get_by_role("radio", name=name).first.click()
        return False

    def answer_yes_no(self, question, yes: bool) -> None:
        group = self.page.get_by_role("radiogroup", name=question)
        group.get_by_label("Yes" if yes else "No", exact=True).click()

    def has_question(self, question) -> bool:
        try:
            return self.page.get_by_role("radiogroup", name=question).count() > 0
        except PlaywrightError:
            return False

    def has_checkboxes(self) -> bool:
        try:
            return self.page.get_by_role("checkbox").count() > 0
        except PlaywrightError:
            return False

    def current_section(self) -> str:
        """First heading on the page, for error messages."""
        try:
            heading = self.page.locator(_HEADING_SELECTOR).first
            if heading.count() > 0:
                return heading.text_content() or "unknown"
            return "unknown"
        except PlaywrightError:
            return "unknown"

    def _mapped(self, resolved: str, original: str) -> str:
        return f' (mapped from "{original}")' if resolved != original else ""

    # ── States ───────────────────────────────────────────────────────

    def step_load(self, t: Traversal) -> str:
        """LOAD → HERO: open the form, retrying the navigation once."""
        try:
            self.page.goto(self.form_url, timeout=self.navigation_timeout)
            self.wait_for_page_ready()
        except PlaywrightError as e:
            logger.warning(f"{self.prefix}   Navigation failed ({e}), retrying...")
            self.page.wait_for_timeout(self.nav_retry_delay)
            self.page.goto(self.form_url, timeout=self.navigation_timeout)
            self.wait_for_page_ready()
        return FormState.HERO

    def step_hero(self, t: Traversal) -> str:
        """HERO → ASPECT"""
        hero = t.play.first_hero
        name = resolve_hero_name(hero.hero, self.tables)
        logger.info(f"  Selecting hero: {name}{self._mapped(name, hero.hero)}")
        if not self.select_radio(name):
            logger.debug(f"  Hero '{name}' selected by partial match")
        self.click_next()
        return FormState.ASPECT

    def step_aspect(self, t: Traversal) -> str:
        """ASPECT → EXTRA_HERO | VILLAIN"""
        hero = t.play.first_hero
        name = resolve_hero_name(hero.hero, self.tables)

        if name in self.tables.no_aspect_heroes:
            logger.info(f"  {name}: skipping aspect selection (uses all aspects)")
        elif name in self.tables.dual_aspect_heroes:
            dual = map_dual_aspect(hero.aspect)
            logger.info(f"  Selecting {name} dual aspects: {dual}{self._mapped(dual, hero.aspect)}")
            self.select_radio(dual)
        else:
            logger.info(f"  Selecting aspect: {hero.aspect}")
            self.select_radio(hero.aspect)

        more = t.play.has_additional_heroes
        self.answer_yes_no(hero_question_pattern(1), more)
        self.click_next()

        if more:
            t.hero_index = 1
            return FormState.EXTRA_HERO
        return FormState.VILLAIN

    def step_extra_hero(self, t: Traversal) -> str:
        """EXTRA_HERO → EXTRA_HERO | VILLAIN

        All-aspect and dual-aspect handling only applies to the first hero.
        """
        i = t.hero_index
        heroes = t.play.heroes
        hero = heroes[i]
        ordinal = hero_ordinal(i)

        name = resolve_hero_name(hero.hero, self.tables)
        logger.info(f"  Selecting {ordinal} hero: {name}{self._mapped(name, hero.hero)}")
        self.select_radio(name)
        self.click_next()

        logger.info(f"  Selecting {ordinal} hero aspect: {hero.aspect}")
        self.select_radio(hero.aspect)

        has_next = i + 1 < len(heroes)
        # The fourth hero's section has no follow-up question
        if i + 1 <= 3:
            question = hero_question_pattern(i + 1)
            if self.has_question(question):
                self.answer_yes_no(question, has_next)
            else:
                logger.debug(f"  No '{hero_ordinal(i + 1)} hero' question on this page")
        self.click_next()

        t.hero_index = i + 1
        return FormState.EXTRA_HERO if has_next else FormState.VILLAIN

    def step_villain(self, t: Traversal) -> str:
        """VILLAIN → CAMPAIGN"""
        villain = t.play.villain
        name = resolve_villain_name(villain, self.tables)
        logger.info(f"  Selecting villain: {name}{self._mapped(name, villain)}")
        self.select_radio(name)
        self.click_next()
        return FormState.CAMPAIGN

    def step_campaign(self, t: Traversal) -> str:
        """CAMPAIGN → MODULAR: answered only when the page is actually shown."""
        if self.has_question(_CAMPAIGN_QUESTION):
            t.campaign_page_seen = True
            logger.info("  Handling campaign page (selecting No for campaign mode)")
            self.answer_yes_no(_CAMPAIGN_QUESTION, False)
            self.click_next()
        return FormState.MODULAR

    def step_modular(self, t: Traversal) -> str:
        """MODULAR → DIFFICULTY"""
        play = t.play
        if play.villain in self.tables.scenarios_without_modular_page:
            logger.info(f"  Skipping modular sets ({play.villain} scenario)")
            return FormState.DIFFICULTY

        if not self.has_checkboxes():
            raise PageMismatchError(
                f'Expected to be on Modular Sets page, but found: "{self.current_section()}"'
            )

        logger.info(f"  Selecting {len(play.modular_sets)} modular sets")
        for modular_set in play.modular_sets:
            try:
                checkbox = self.page.get_by_role("checkbox", name=modular_set, exact=True)
                if checkbox.count() > 0:
                    checkbox.click()
                    logger.info(f"    ✓ Selected: {modular_set}")
                    continue
                partial = self.page.get_by_role("checkbox", name=modular_set)
                if partial.count() > 0:
                    partial.first.click()
                    logger.info(f"    ✓ Selected: {modular_set} (partial match)")
                else:
                    logger.warning(f'    Warning: Could not find modular set "{modular_set}"')
            except PlaywrightError as e:
                logger.warning(f'    Warning: Error selecting modular set "{modular_set}": {e}')

        self.click_next()
        return FormState.DIFFICULTY

    def step_difficulty(self, t: Traversal) -> str:
        """DIFFICULTY → SUBMIT"""
        play = t.play
        won = play.first_hero.won
        logger.info(f"  Win: {'Yes' if won else 'No'}")
        self.answer_yes_no(_WIN_QUESTION, won)

        difficulty = parse_difficulty(play.difficulty)

        if play.villain in self.tables.exception_difficulty_scenarios:
            label = wrecking_crew_difficulty(play.difficulty)
            logger.info(f"  {play.villain} difficulty: {label}")
            self.select_radio(label)
        else:
            if difficulty.standard:
                logger.info(f"  Standard: {difficulty.standard}")
                self.select_radio(difficulty.standard)
            if difficulty.expert:
                logger.info(f"  Expert: {difficulty.expert}")
                self.select_radio(difficulty.expert)

        if difficulty.is_heroic:
            logger.info(f"  Heroic: {difficulty.heroic}")
            # Scoped to its own question: Skirmish mode reuses the labels 1-4
            heroic_group = self.page.get_by_role("radiogroup", name=_HEROIC_QUESTION)
            heroic_group.get_by_role("radio", name=difficulty.heroic, exact=True).click()

        return FormState.SUBMIT

    def step_submit(self, t: Traversal) -> str:
        """SUBMIT → DONE"""
        logger.info(f"{self.prefix}   Form filled successfully!")
        if self.dry_run:
            logger.info(f"{self.prefix}   ✓ [DRY RUN] Form submitted successfully! (Submit not clicked)")
            return FormState.DONE

        self.page.get_by_role("button", name="Submit").click()
        self.wait_for_page_ready()
        logger.info(f"{self.prefix}   ✓ Form submitted successfully!")
        return FormState.DONE
