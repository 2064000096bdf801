"""Location-identity resolution and duplicate-free sync for street food cart ratings."""

__version__ = "0.1.0"
