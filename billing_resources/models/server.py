"""Panel server model and the child entities counted against server limits"""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from billing_resources.models.base import BaseModel


class ServerModel(BaseModel):
    """
    Provisioned game/application server.

    memory and disk are in MB, cpu in percent (100 = one core). The three
    *_limit columns cap how many databases, backups and allocations the
    server may hold.
    """
    __tablename__ = "servers"

    uuid = Column(String(36), unique=True, nullable=False)
    uuid_short = Column(String(8), unique=True, nullable=False, index=True)
    name = Column(String(191), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    memory = Column(Integer, nullable=False, default=0)
    cpu = Column(Integer, nullable=False, default=0)
    disk = Column(Integer, nullable=False, default=0)
    database_limit = Column(Integer, nullable=False, default=0)
    backup_limit = Column(Integer, nullable=False, default=0)
    allocation_limit = Column(Integer, nullable=False, default=0)

    owner = relationship("UserModel", back_populates="servers")

    def __repr__(self) -> str:
        return f"<ServerModel(id={self.id}, uuid_short={self.uuid_short}, owner_id={self.owner_id})>"


class ServerDatabaseModel(BaseModel):
    """Database provisioned for a server"""
    __tablename__ = "server_databases"

    server_id = Column(Integer, ForeignKey("servers.id", ondelete="CASCADE"), nullable=False, index=True)
    database = Column(String(191), nullable=False)


class BackupModel(BaseModel):
    """Backup taken of a server"""
    __tablename__ = "server_backups"

    server_id = Column(Integer, ForeignKey("servers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(191), nullable=False)


class AllocationModel(BaseModel):
    """IP/port allocation assigned to a server"""
    __tablename__ = "allocations"

    server_id = Column(Integer, ForeignKey("servers.id", ondelete="CASCADE"), nullable=True, index=True)
    ip = Column(String(45), nullable=False)
    port = Column(Integer, nullable=False)
