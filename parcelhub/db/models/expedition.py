"""
Expedition Model - carrier partners that take over the physical leg
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from parcelhub.db.database import Base


class Expedition(Base):
    """Carrier partner registry"""

    __tablename__ = "expeditions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(30), unique=True, nullable=False, index=True)
    api_url = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
