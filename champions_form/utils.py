"""
Utility functions: config loading, logging setup, browser setup and diagnostics.

  - setup_logging()       : console (INFO) + per-run log file (DEBUG)
  - load_config()         : config.yaml with safe defaults for every key
  - capture_diagnostics() : screenshot, falling back to an HTML dump
  - launch_browser() / new_context() : Chromium tuned for headless runs
"""

import os
import re
import logging
import yaml
from datetime import datetime

from champions_form.errors import ConfigError


ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.path.join(ROOT_DIR, "logs")
SCREENSHOT_DIR = os.path.join(LOG_DIR, "screenshots")
HTMLDUMP_DIR   = os.path.join(LOG_DIR, "htmldumps")
DEFAULT_CONFIG_PATH = os.path.join(ROOT_DIR, "config.yaml")

FORM_URL = (
    "https://docs.google.com/forms/d/e/"
    "1FAIpQLSdb_5W0QBAF99fG824yF4Dowxh_t5Sii-juH9IbX9rUW5tTdA/viewform"
)

LOGGER_NAME = "champions_form"

# Playwright timeouts (milliseconds)
DEFAULT_TIMEOUT = 10_000       # element lookups and clicks
NAVIGATION_TIMEOUT = 30_000    # page loads and settling


def setup_logging() -> logging.Logger:
    """Configure and return the project logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    os.makedirs(LOG_DIR, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(LOG_DIR, f"run_{timestamp}.log")

    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    ch_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
    ch.setFormatter(ch_fmt)

    # File handler
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(threadName)s - %(message)s")
    fh.setFormatter(fh_fmt)

    logger.addHandler(ch)
    logger.addHandler(fh)

    logger.info(f"Log file: {log_file}")
    return logger


# ── Configuration ────────────────────────────────────────────────────────

# Lookup-table keys: mappings are merged over the built-in tables,
# sets replace them outright.
_MAPPING_KEYS = ("hero_name_mappings", "villain_name_mappings")
_SET_KEYS = (
    "scenarios_without_modular_page",
    "exception_difficulty_scenarios",
    "no_aspect_heroes",
    "dual_aspect_heroes",
)


def _require_number(config: dict, key: str, minimum: float, *, integer: bool = False) -> None:
    value = config[key]
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds) or value < minimum:
        kind = "int" if integer else "number"
        raise ConfigError(f"{key} must be {kind} >= {minimum}, got: {value!r}")


def load_config(config_path: str = None) -> dict:
    """Load and validate config.yaml, applying safe defaults for every key.

    With no explicit path the repo-root ``config.yaml`` is used when it
    exists; otherwise every key takes its default.  An explicit path that
    does not exist is an error.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        explicit = False
    else:
        explicit = True

    config: dict = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Config file is not valid YAML: {config_path} ({e})") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")
        config.update(loaded)
    elif explicit:
        raise ConfigError(f"Config file not found: {config_path}")

    # Destination
    config.setdefault("form_url", FORM_URL)
    if not isinstance(config["form_url"], str) or not config["form_url"].startswith("http"):
        raise ConfigError(f"form_url must be an http(s) URL, got: {config['form_url']!r}")

    # Timeouts (milliseconds)
    config.setdefault("default_timeout", DEFAULT_TIMEOUT)
    config.setdefault("navigation_timeout", NAVIGATION_TIMEOUT)
    config.setdefault("settle_delay", 500)
    config.setdefault("nav_retry_delay", 2_000)
    for key in ("default_timeout", "navigation_timeout"):
        _require_number(config, key, 1_000, integer=True)
    for key in ("settle_delay", "nav_retry_delay"):
        _require_number(config, key, 0, integer=True)

    # Pacing (seconds)
    config.setdefault("delay_after_success", 2.0)
    config.setdefault("delay_after_failure", 3.0)
    config.setdefault("recovery_pause", 2.0)
    for key in ("delay_after_success", "delay_after_failure", "recovery_pause"):
        _require_number(config, key, 0)

    # Recovery
    config.setdefault("max_consecutive_failures", 3)
    _require_number(config, "max_consecutive_failures", 1, integer=True)

    # Workers
    config.setdefault("max_workers_limit", 8)
    _require_number(config, "max_workers_limit", 1, integer=True)
    config.setdefault("max_workers", min(8, config["max_workers_limit"]))
    _require_number(config, "max_workers", 1, integer=True)
    if config["max_workers"] > config["max_workers_limit"]:
        raise ConfigError(
            f"max_workers ({config['max_workers']}) exceeds "
            f"max_workers_limit ({config['max_workers_limit']})"
        )

    # Browser
    config.setdefault("headless", True)
    config.setdefault("block_heavy_resources", True)
    config.setdefault("capture_diagnostics", True)

    # Lookup tables
    for key in _MAPPING_KEYS:
        value = config.setdefault(key, {})
        if not isinstance(value, dict):
            raise ConfigError(f"{key} must be a mapping, got: {type(value).__name__}")
    for key in _SET_KEYS:
        value = config.get(key)
        if value is not None and not isinstance(value, list):
            raise ConfigError(f"{key} must be a list, got: {type(value).__name__}")

    return config


# ── Diagnostics ──────────────────────────────────────────────────────────

def capture_diagnostics(page, label: str = "error") -> str | None:
    """
    Capture as much diagnostic data as possible, even when the page is broken.

    Chain:
      1. Always log page.url and page.title()
      2. page.screenshot() with a hard 5s timeout
      3. On failure → page.content() → save as .html dump

    Returns the file path of the saved screenshot or HTML dump, or None.
    Never raises.
    """
    logger = logging.getLogger(LOGGER_NAME)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    safe_label = re.sub(r"[^\w\-]", "_", label)[:80]

    try:
        current_url = page.url
    except Exception:
        current_url = "<unavailable>"
    try:
        current_title = page.title()
    except Exception:
        current_title = "<unavailable>"
    logger.debug(f"[diag] url={current_url}  title={current_title}")

    try:
        os.makedirs(SCREENSHOT_DIR, exist_ok=True)
        filepath = os.path.join(SCREENSHOT_DIR, f"{timestamp}_{safe_label}.png")
        page.screenshot(path=filepath, full_page=True, timeout=5_000)
        logger.info(f"📸 Screenshot saved: {filepath}")
        return filepath
    except Exception as ss_err:
        logger.debug(f"Screenshot failed ({ss_err}), falling back to HTML dump")

    try:
        os.makedirs(HTMLDUMP_DIR, exist_ok=True)
        html_filepath = os.path.join(HTMLDUMP_DIR, f"{timestamp}_{safe_label}.html")
        html_content = page.content()
        with open(html_filepath, "w", encoding="utf-8") as f:
            f.write(html_content)
        logger.info(f"📄 HTML dump saved: {html_filepath}")
        return html_filepath
    except Exception as html_err:
        logger.warning(f"HTML dump also failed: {html_err}")
        return None


# ── Browser setup ────────────────────────────────────────────────────────

# Resource types that are safe to block: the form needs its scripts,
# stylesheets and fonts to lay out the radio/checkbox controls.
_BLOCKED_RESOURCE_TYPES = {"image", "media"}

# URL patterns for third-party assets that aren't needed for automation.
_BLOCKED_URL_PATTERNS = [
    "www.googletagmanager.com",
    "www.google-analytics.com",
    "analytics.",
    "doubleclick.net",
]


def _should_block(url: str) -> bool:
    """Return True if the URL matches a blocked third-party pattern."""
    lower = url.lower()
    return any(pattern in lower for pattern in _BLOCKED_URL_PATTERNS)


def optimize_context_for_headless(context) -> None:
    """
    Abort image, media and analytics requests on a BrowserContext.

    Call this ONCE on the context right after creating it.  Every page
    opened from this context (including pages opened during recovery)
    inherits the routes.
    """
    def _route_handler(route):
        request = route.request
        if request.resource_type in _BLOCKED_RESOURCE_TYPES or _should_block(request.url):
            route.abort()
            return
        route.continue_()

    context.route("**/*", _route_handler)
    logging.getLogger(LOGGER_NAME).debug("Headless optimisation applied: blocking images, media & analytics")


def launch_browser(playwright, config: dict):
    """Launch Chromium with the launch flags appropriate for config['headless']."""
    is_headless = config.get("headless", True)
    launch_args: list[str] = []
    if is_headless:
        # Prevent navigator.webdriver from returning true
        launch_args.append("--disable-blink-features=AutomationControlled")
    return playwright.chromium.launch(
        headless=bool(is_headless),
        slow_mo=0 if is_headless else 100,
        args=launch_args or None,
    )


def new_context(browser, config: dict):
    """Create an isolated BrowserContext for one worker session."""
    ctx_opts: dict = {}
    if config.get("headless", True):
        # Desktop viewport and user-agent instead of the 800×600
        # default and the "HeadlessChrome" user-agent string.
        ctx_opts["viewport"] = {"width": 1920, "height": 1080}
        ctx_opts["user_agent"] = (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0.0.0 Safari/537.36"
        )
    context = browser.new_context(**ctx_opts)
    if config.get("block_heavy_resources", True):
        optimize_context_for_headless(context)
    return context
