"""Media manager: browse media roots and control playback over HTTP."""

__version__ = "0.1.0"
