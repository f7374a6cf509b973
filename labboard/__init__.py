"""Subject board with a two-stage CSV import reconciliation engine."""

__version__ = "0.1.0"
