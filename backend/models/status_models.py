"""
Data models for compose-status.

Unit is the durable, persisted record owned by the reconciliation engine.
Everything else is per-cycle: observations from the runtime, health check
results, host metric samples and the published view rendered by the web layer.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.keys import make_composite_key


class ObservedUnit(BaseModel):
    """One running container as listed by the snapshot source"""
    model_config = ConfigDict(frozen=True)

    project: str
    name: str
    status: str = ''
    container_id: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    # network name -> IP address
    networks: Dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return make_composite_key(self.project, self.name)


class Unit(BaseModel):
    """A tracked container, identified by (project, name)"""
    model_config = ConfigDict(frozen=True)

    project: str
    name: str
    status: str = ''
    link: Optional[str] = None
    group: Optional[str] = None
    last_seen: datetime
    down: bool = False

    @field_validator('last_seen')
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Resume files written without an offset are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def key(self) -> str:
        return make_composite_key(self.project, self.name)


class HealthCheckConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int
    method: str = 'GET'
    path: str = '/'
    # None means any 2xx response counts as healthy
    expected_code: Optional[int] = None


class HealthCheckResult(BaseModel):
    """Outcome of one probe. Never persisted, recomputed every pass."""
    model_config = ConfigDict(frozen=True)

    success: bool
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None


class MetricsSample(BaseModel):
    """Host metrics read once per pass. None means the metric was unavailable."""
    model_config = ConfigDict(frozen=True)

    load1: Optional[float] = None
    load5: Optional[float] = None
    load15: Optional[float] = None
    mem_used: Optional[int] = None
    mem_total: Optional[int] = None
    cpu_percent: Optional[float] = None
    cpu_temp: Optional[float] = None


class HostStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    sample: MetricsSample = Field(default_factory=MetricsSample)
    cpu_history: List[float] = Field(default_factory=list)
    temp_history: List[float] = Field(default_factory=list)


class UnitView(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit: Unit
    health: Optional[HealthCheckResult] = None


class ProjectView(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    units: List[UnitView]


class GroupView(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    projects: List[ProjectView]


class StatusView(BaseModel):
    """Immutable snapshot published at the end of each successful pass"""
    model_config = ConfigDict(frozen=True)

    groups: List[GroupView] = Field(default_factory=list)
    stats: HostStats = Field(default_factory=HostStats)
    updated_at: Optional[datetime] = None
