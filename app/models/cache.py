"""
Async Cache Models
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from app.db import Base


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(512), nullable=False, unique=True, index=True)
    cache_data = Column(Text, nullable=False)  # JSON text
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CacheEntryDependency(Base):
    __tablename__ = "cache_entry_dependencies"
    __table_args__ = (
        Index("ix_cache_entry_dependencies_dependency", "dependency_type", "dependency_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(512), nullable=False, index=True)
    dependency_type = Column(String(32), nullable=False)
    dependency_id = Column(String(255), nullable=False)


class CacheConfig(Base):
    __tablename__ = "cache_config"

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(512), nullable=False, unique=True, index=True)
    ttl_minutes = Column(Integer, nullable=False, default=60)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
