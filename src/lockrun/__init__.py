"""lockrun: run a command while holding an advisory file lock."""

__version__ = "0.1.0"
