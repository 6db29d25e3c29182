from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProbeStatus(str, Enum):
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    # Nominal success whose reported round trip exceeds the probe timeout.
    SKEWED = "skewed"


class ProbeOutcome(BaseModel):
    """Result of one ping probe against one host within a single round."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="Hostname or IP that was probed")
    status: ProbeStatus = Field(..., description="Classification of the probe result")
    round_trip_ms: Optional[int] = Field(
        None,
        ge=0,
        description="Reported round trip in whole milliseconds (success and skewed only)",
    )
    reason: Optional[str] = Field(
        None,
        description="Status or error text for failed and timed out probes",
    )

    @property
    def is_countable(self) -> bool:
        """True if this outcome contributes to the round average."""
        return self.status is ProbeStatus.SUCCESS and self.round_trip_ms is not None


class RoundResult(BaseModel):
    """Reduction of all probe outcomes of one round."""

    model_config = ConfigDict(frozen=True)

    ping_ms: int = Field(
        ...,
        ge=0,
        description="Truncated mean round trip of countable probes, 0 if none",
    )
    success_count: int = Field(..., ge=0, description="Number of countable probes")
    host_count: int = Field(..., ge=0, description="Number of hosts probed")


class PingReading(BaseModel):
    """The published ping metric and its timestamp, replaced as a whole."""

    model_config = ConfigDict(frozen=True)

    ping_ms: int = Field(0, ge=0, description="Average ping in milliseconds")
    last_update: Optional[str] = Field(
        None,
        description="ISO-8601 UTC time of the last completed round",
    )
    last_update_at: Optional[datetime] = Field(None, exclude=True)
    success_count: int = Field(0, ge=0)
    host_count: int = Field(0, ge=0)


class DisplayEntry(BaseModel):
    """One value shown by the display application."""

    id: str = Field(..., description="Stable identifier, e.g. 'ping'")
    name: str = Field(..., description="Human readable label")
    value: Union[int, str]
    unit: Optional[str] = None


class PingConfig(BaseModel):
    hosts: List[str]
    refresh_interval_s: float = Field(..., gt=0)
    probe_timeout_ms: int = Field(..., gt=0)
