"""
User Model - Customers, Partners and Staff
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Enum as SQLEnum, Boolean, Numeric, CheckConstraint
)

from parcelhub.db.database import Base


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    MITRA = "mitra"  # partner reseller, billed at partner rates
    ADMIN = "admin"


class User(Base):
    """Account holder with a prepaid wallet"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(
        SQLEnum(UserRole, values_callable=lambda x: [e.value for e in x]),
        default=UserRole.CUSTOMER,
        nullable=False
    )
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.ADMIN
