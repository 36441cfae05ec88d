import logging
import time
from typing import Callable, Dict, List, Optional
from quelea.core.errors import LeaseExpired
from quelea.core.interfaces import ITransport
from quelea.core.models import AckStatus, LeasedItem

logger = logging.getLogger(__name__)


class Consumer:
    """Leases batches from a transport and tracks each lease until it ends.

    Acknowledging the same lease twice is answered locally.
    """

    def __init__(
        self,
        transport: ITransport,
        clock: Callable[[], float] = time.time,
    ):
        self.transport = transport
        self._clock = clock
        # lease_token -> LeasedItem
        self._leases: Dict[str, LeasedItem] = {}
        # lease_token -> lease expiry of acknowledged leases
        self._acknowledged: Dict[str, float] = {}

    def now(self) -> float:
        return self._clock()

    def _validate(self, max_batch: int, wait_seconds: int, lease_seconds: int):
        if not 1 <= max_batch <= self.transport.max_batch:
            raise ValueError(
                f"max_batch must be between 1 and {self.transport.max_batch}, got {max_batch}"
            )
        if not 0 <= wait_seconds <= self.transport.max_wait_seconds:
            raise ValueError(
                f"wait_seconds must be between 0 and {self.transport.max_wait_seconds}, got {wait_seconds}"
            )
        if not 0 <= lease_seconds <= self.transport.max_lease_seconds:
            raise ValueError(
                f"lease_seconds must be between 0 and {self.transport.max_lease_seconds}, got {lease_seconds}"
            )

    async def lease(
        self, max_batch: int = 10, wait_seconds: int = 20, lease_seconds: int = 30
    ) -> List[LeasedItem]:
        self._validate(max_batch, wait_seconds, lease_seconds)
        items = await self.transport.receive(max_batch, wait_seconds, lease_seconds)
        for item in items:
            self._leases[item.lease_token] = item
        if items:
            logger.info(f"Leased {len(items)} item(s) for {lease_seconds}s")
        else:
            logger.debug(f"No items available after {wait_seconds}s")
        return items

    def _prune_acknowledged(self):
        now = self.now()
        for token in [t for t, expiry in self._acknowledged.items() if expiry <= now]:
            del self._acknowledged[token]

    async def acknowledge(self, item: LeasedItem) -> AckStatus:
        token = item.lease_token
        self._prune_acknowledged()
        if token in self._acknowledged:
            return AckStatus.ALREADY_ACKNOWLEDGED
        if item.is_expired(self.now()):
            self._leases.pop(token, None)
            raise LeaseExpired(token, f"Lease on item {item.id} expired before acknowledgment")

        await self.transport.acknowledge(token)
        self._acknowledged[token] = item.lease_expiry
        self._leases.pop(token, None)
        logger.debug(f"Acknowledged item {item.id}")
        return AckStatus.ACKNOWLEDGED

    async def release(self, item: LeasedItem):
        if item.lease_token in self._acknowledged:
            return
        await self.transport.release(item.lease_token)
        self._leases.pop(item.lease_token, None)
        logger.debug(f"Released item {item.id}")

    def outstanding(self, now: Optional[float] = None) -> List[LeasedItem]:
        """Leases still held: not acknowledged, not released, not expired."""
        now = self.now() if now is None else now
        for token in [t for t, i in self._leases.items() if i.is_expired(now)]:
            del self._leases[token]
        return list(self._leases.values())

    def forget(self, items: List[LeasedItem]):
        for item in items:
            self._leases.pop(item.lease_token, None)
            self._acknowledged.pop(item.lease_token, None)
