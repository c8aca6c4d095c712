"""SQLAlchemy model for the NZa tariff code catalog.

The table is owned by the practice-management application; this service
only reads active rows.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from dental_coding.core.database import Base


class NzaCode(Base):
    """NZa tariff code (prestatiecode mondzorg)."""

    __tablename__ = "nza_codes"

    code: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        unique=True,
        index=True,
    )
    description_nl: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    max_tariff: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    requires_tooth: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requires_surface: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    keywords: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    examples: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    companions: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)

    # Explanation from the KNMT tariff book
    toelichting: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<NzaCode(code='{self.code}', category='{self.category}', tariff={self.max_tariff})>"
