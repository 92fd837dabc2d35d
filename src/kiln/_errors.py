"""kiln error hierarchy.

All kiln-specific errors inherit from KilnError for easy catching.
"""


class KilnError(Exception):
    """Base error for all kiln operations."""


class ConfigError(KilnError):
    """Invalid or missing configuration."""


class BuildError(KilnError):
    """The bundler failed to produce the application artifact."""


class CopyError(KilnError):
    """Copying a static asset pair failed."""


class ServeError(KilnError):
    """The dev server could not start or was driven out of order."""
