"""SQLAlchemy models."""

from ledger.models.revenue import CalculationSource, Revenue

__all__ = ["CalculationSource", "Revenue"]
