"""User resources (quota record) model"""

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from billing_resources.models.base import BaseModel


class UserResourcesModel(BaseModel):
    """
    Per-user resource ceilings.

    One row per user. Every limit is a non-negative integer and 0 means
    unlimited wherever the value is read as a ceiling.
    """
    __tablename__ = "billingresources_user_resources"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    memory_limit = Column(Integer, nullable=False, default=0, server_default="0")
    cpu_limit = Column(Integer, nullable=False, default=0, server_default="0")
    disk_limit = Column(Integer, nullable=False, default=0, server_default="0")
    server_limit = Column(Integer, nullable=False, default=0, server_default="0")
    database_limit = Column(Integer, nullable=False, default=0, server_default="0")
    backup_limit = Column(Integer, nullable=False, default=0, server_default="0")
    allocation_limit = Column(Integer, nullable=False, default=0, server_default="0")
    version_id = Column(Integer, nullable=False, default=1, server_default="1")

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', name='uk_billingresources_user'),
    )

    # Stale read-modify-write cycles fail with StaleDataError
    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    user = relationship("UserModel", back_populates="resources", uselist=False)

    def __repr__(self) -> str:
        return f"<UserResourcesModel(id={self.id}, user_id={self.user_id})>"
