"""Stream a SQL dump while dropping INSERT statements for selected tables."""

__version__ = "0.3.0"
