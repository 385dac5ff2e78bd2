"""Plugin settings model"""

from sqlalchemy import Column, String, Text, UniqueConstraint

from billing_resources.models.base import BaseModel


class PluginSettingModel(BaseModel):
    """Key-value settings namespaced per plugin; values are opaque strings"""
    __tablename__ = "plugin_settings"

    namespace = Column(String(100), nullable=False)
    key = Column(String(191), nullable=False)
    value = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('namespace', 'key', name='uk_plugin_setting'),
    )
