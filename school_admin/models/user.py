"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, String, func, true
from school_admin.database import Base


class User(Base):
    """Represents a staff member who can sign in."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255))
    role = Column(String(20), nullable=False)  # admin, head_teacher, teacher or accountant
    phone = Column(String(30))
    is_active = Column(Boolean, nullable=False, server_default=true())
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
