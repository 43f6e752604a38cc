"""Cross-project shell command history, imported into one searchable store."""

__version__ = "0.1.0"
