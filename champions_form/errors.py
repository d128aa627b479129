"""Exception types raised across the form automation."""


class FormAutomationError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(FormAutomationError):
    """Invalid or missing configuration (fatal before any work starts)."""


class PlayDataError(FormAutomationError):
    """The play export could not be read or violates a record invariant."""


class PageMismatchError(FormAutomationError):
    """The rendered form page is not the page the traversal expected."""


class SessionError(FormAutomationError):
    """A worker session lost its page and could not open a new one."""
