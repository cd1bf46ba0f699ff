"""Monthly revenue aggregate model."""

from datetime import date
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger.db.base import Base, TimestampMixin


class CalculationSource(str, Enum):
    """How an aggregate's figures were last produced."""

    INVOICE_EVENT = "invoice_event"
    MANUAL_RECOMPUTE = "manual_recompute"
    TEMPLATE = "template"


class Revenue(Base, TimestampMixin):
    """Per-month revenue totals derived from invoices.

    One row per calendar month. ``period`` is always the first day of the
    month and never changes after creation. Amounts are integer cents.
    """

    __tablename__ = "revenues"
    __table_args__ = (CheckConstraint("invoice_count >= 0", name="ck_revenues_invoice_count_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period: Mapped[date] = mapped_column(Date, unique=True, index=True, nullable=False)
    invoice_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_paid_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_pending_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    calculation_source: Mapped[str] = mapped_column(
        String(32), default=CalculationSource.INVOICE_EVENT.value, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Revenue(id={self.id}, period={self.period}, invoice_count={self.invoice_count}, "
            f"total_amount={self.total_amount})>"
        )
