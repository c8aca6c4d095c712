"""SQLAlchemy ORM models.

All models inherit from Base which provides:
- id: UUID primary key
- created_at: Timestamp
"""

from dental_coding.core.database import Base
from dental_coding.models.nza_code import NzaCode

__all__ = [
    "Base",
    "NzaCode",
]
