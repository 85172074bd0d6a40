"""
User model - homeowners, contractors and admins
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from datetime import datetime
from buildmarket.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="homeowner")  # homeowner | contractor | admin
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
