"""3PL Item Response Theory engine."""

__version__ = "0.1.0"
