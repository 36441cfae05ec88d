from abc import ABC, abstractmethod
from typing import Dict, List
from .models import LeasedItem, ProcessingOutcome

SQS_MAX_BATCH = 10
SQS_MAX_WAIT_SECONDS = 20
SQS_MAX_PAYLOAD_SIZE = 256 * 1024
SQS_MAX_VISIBILITY = 43_200


class ITransport(ABC):
    max_batch: int = SQS_MAX_BATCH
    max_wait_seconds: int = SQS_MAX_WAIT_SECONDS
    max_payload_size: int = SQS_MAX_PAYLOAD_SIZE
    max_lease_seconds: int = SQS_MAX_VISIBILITY

    @abstractmethod
    async def send(
        self, body: str, attributes: Dict[str, str], delay_seconds: int = 0
    ) -> str:
        """Durably enqueues a body and returns the broker-assigned id."""
        pass

    @abstractmethod
    async def receive(
        self, max_batch: int, wait_seconds: int, lease_seconds: int
    ) -> List[LeasedItem]:
        """Leases up to max_batch items, blocking up to wait_seconds."""
        pass

    @abstractmethod
    async def acknowledge(self, lease_token: str):
        """Deletes the leased item so it is never redelivered."""
        pass

    @abstractmethod
    async def release(self, lease_token: str):
        """Makes a leased item visible again immediately."""
        pass

    async def close(self):
        pass


class IDeadLetterSink(ABC):
    @abstractmethod
    async def route(self, item: LeasedItem, outcome: ProcessingOutcome):
        """Stores an item that exhausted its deliveries."""
        pass
