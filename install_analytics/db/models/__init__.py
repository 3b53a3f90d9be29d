"""Database models."""

from install_analytics.db.models.base import Base
from install_analytics.db.models.install import Install

__all__ = ["Base", "Install"]
