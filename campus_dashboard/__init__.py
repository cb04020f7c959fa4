"""Campus Dashboard: error management and logging pipeline."""

__version__ = "0.1.0"
