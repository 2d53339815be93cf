"""WorkTrack - field maintenance data collection service."""

__version__ = "1.0.0"
