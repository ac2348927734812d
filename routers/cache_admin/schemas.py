from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CacheStatsResponse(BaseModel):
    memory_count: int
    memory_expired_count: int
    persistent_count: int
    persistent_expired_count: int
    last_access: Optional[datetime]
    hits: int
    misses: int
    degraded: int
    hit_rate: float
    persistent_available: bool


class CacheClearRequest(BaseModel):
    pattern: Optional[str] = Field(None, description="Remove every key containing this substring")
    prefix: Optional[str] = Field(None, description="Remove every key starting with this prefix")


class CacheInvalidateRequest(BaseModel):
    type: str = Field(..., description="Dependency type (user, concurso, simulado, ...)")
    id: str = Field(..., min_length=1, description="Entity id")


class CacheOperationResponse(BaseModel):
    success: bool = True
    removed: int
    message: str


class CacheConfigCreateRequest(BaseModel):
    cache_key: str = Field(..., min_length=1, max_length=512)
    ttl_minutes: int = Field(..., gt=0)
    description: Optional[str] = None


class CacheConfigUpdateRequest(BaseModel):
    ttl_minutes: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None


class CacheConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cache_key: str
    ttl_minutes: int
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


class CacheSettingsResponse(BaseModel):
    provider: str
    default_ttl_minutes: float
    max_keys: int
    sweep_interval_seconds: int
    purge_interval_seconds: int
    coalesce_compute: bool
    prefix_ttl_minutes: dict
    ttl_overrides: dict
