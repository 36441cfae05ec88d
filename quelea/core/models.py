from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

JSON_CONTENT_TYPE = "application/json"
MSGPACK_CONTENT_TYPE = "application/x-msgpack"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class AckStatus(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    ALREADY_ACKNOWLEDGED = "already_acknowledged"


class CycleState(str, Enum):
    IDLE = "idle"
    LEASING = "leasing"
    PROCESSING = "processing"
    ACKNOWLEDGING = "acknowledging"
    SUMMARIZING = "summarizing"


class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: Dict[str, Any]
    content_type: str = JSON_CONTENT_TYPE
    delay_seconds: int = Field(default=0, ge=0, le=900)
    attributes: Dict[str, str] = Field(default_factory=dict)


class LeasedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    body: str
    lease_token: str
    lease_expiry: float  # Unix timestamp
    attributes: Dict[str, str] = Field(default_factory=dict)
    receive_count: int = 1

    @property
    def content_type(self) -> str:
        return self.attributes.get("ContentType", JSON_CONTENT_TYPE)

    def is_expired(self, now: float) -> bool:
        return now >= self.lease_expiry


class ProcessingOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    status: OutcomeStatus
    reason: Optional[str] = None

    @classmethod
    def success(cls, item_id: str) -> "ProcessingOutcome":
        return cls(item_id=item_id, status=OutcomeStatus.SUCCESS)

    @classmethod
    def failure(cls, item_id: str, reason: str) -> "ProcessingOutcome":
        return cls(item_id=item_id, status=OutcomeStatus.FAILURE, reason=reason)

    @classmethod
    def skipped(cls, item_id: str, reason: str) -> "ProcessingOutcome":
        return cls(item_id=item_id, status=OutcomeStatus.SKIPPED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class CycleSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    cycle_id: str
    received: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    acknowledged: int = 0
    ack_failures: int = 0
    dead_lettered: int = 0
    released: int = 0
    expired: int = 0
    pending: int = 0
    outcomes: List[ProcessingOutcome] = Field(default_factory=list)
