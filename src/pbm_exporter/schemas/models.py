from __future__ import annotations

from typing import Any, Literal

from bson.timestamp import Timestamp
from pydantic import BaseModel, ConfigDict, Field

NodeHealth = Literal["ok", "error"]


def epoch_seconds(value: Any) -> int | None:
    """Seconds part of a PBM timestamp field.

    PBM stores cluster times as BSON timestamps; older exports and fixtures
    carry them as ``{"high": <seconds>, "low": <increment>}`` documents.
    """
    if isinstance(value, Timestamp):
        return value.time
    if isinstance(value, dict):
        high = value.get("high")
        if isinstance(high, int) and not isinstance(high, bool):
            return high
    return None


class BackupEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    status: str = ""


class SubsystemStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ok: bool = False


class AgentEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    replica_set: str = Field(default="", alias="rs")
    node: str = Field(default="", alias="n")
    pbms: SubsystemStatus = Field(default_factory=SubsystemStatus)
    nodes: SubsystemStatus = Field(default_factory=SubsystemStatus)
    stors: SubsystemStatus = Field(default_factory=SubsystemStatus)

    @property
    def host(self) -> str:
        return f"{self.replica_set}/{self.node}"

    @property
    def health(self) -> NodeHealth:
        if self.pbms.ok and self.nodes.ok and self.stors.ok:
            return "ok"
        return "error"


class PITRState(BaseModel):
    enabled: bool = False
    lock_heartbeat: int | None = None
    chunk_count: int | None = None
    last_chunk_end: int | None = None
