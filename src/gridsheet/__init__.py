"""gridsheet-core -- grid editing, recalculation and document lifecycle."""

__version__ = "0.1.0"
