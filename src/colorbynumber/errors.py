"""
Exception types raised by the color-by-number pipeline.
"""


class ConfigurationError(ValueError):
    """Invalid settings or input dimensions, detected before any pixel scan."""


class PaletteInvariantError(RuntimeError):
    """A computed palette index fell outside the palette bounds."""
