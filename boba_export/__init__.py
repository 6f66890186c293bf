"""Timeline export: compiles multi-track timelines into FFmpeg render graphs."""

__version__ = "0.1.0"
