"""Exception taxonomy for the floating panel manager.

// [LAW:one-source-of-truth] Every failure the manager surfaces is one of these.
Failures are local to a registry key; none of them is fatal to the host.
"""


class FloatPaneError(Exception):
    """Base class for panel manager failures."""

    def __init__(self, message: str, key=None):
        super().__init__(message)
        self.key = key


class ContentCreationError(FloatPaneError):
    """The content factory failed, or a window could not be created for it."""


class StaleWindowError(FloatPaneError):
    """A window handle became invalid between creation and show."""


class InvalidKeyError(FloatPaneError):
    """Registry key is not a non-empty string or an integer."""
