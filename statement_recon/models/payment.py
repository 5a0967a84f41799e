"""Payment ledger model.

Payments are recorded elsewhere in the application; reconciliation only reads
them and stores the back-reference on the bank transaction side.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from statement_recon.database import Base
from statement_recon.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin
from statement_recon.models.statement import TransactionDirection


class Payment(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Money received (or paid) against a service order."""

    __tablename__ = "payments"

    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)  # always positive
    direction: Mapped[TransactionDirection] = mapped_column(
        SQLEnum(TransactionDirection, name="transaction_direction_enum"),
        nullable=False,
        default=TransactionDirection.CREDIT,
    )
    payment_type: Mapped[str] = mapped_column(String(20), nullable=False)  # PIX, BOLETO, ...

    # Display labels
    order_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
