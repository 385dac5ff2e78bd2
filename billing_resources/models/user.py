"""Panel user model"""

import enum
from sqlalchemy import Column, String, Boolean, Enum
from sqlalchemy.orm import relationship
from billing_resources.models.base import BaseModel


class UserRole(str, enum.Enum):
    """Panel role, only admins may manage other users' quotas"""
    ADMIN = "admin"
    USER = "user"


class UserModel(BaseModel):
    """
    Panel user.

    The panel owns this table; the addon reads it to check that a user
    exists and to list users for the admin views.
    """
    __tablename__ = "users"

    uuid = Column(String(36), unique=True, nullable=False)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(
        Enum(UserRole),
        default=UserRole.USER,
        nullable=False
    )
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    resources = relationship(
        "UserResourcesModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    servers = relationship("ServerModel", back_populates="owner")

    def __repr__(self) -> str:
        return f"<UserModel(id={self.id}, username={self.username}, role={self.role})>"
