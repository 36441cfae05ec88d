import asyncio
import time
import uuid
from typing import Callable, Dict, List, Optional
from pydantic import BaseModel, Field
from quelea.core.codec import check_size
from quelea.core.errors import LeaseExpired
from quelea.core.interfaces import ITransport
from quelea.core.models import LeasedItem


class StoredMessage(BaseModel):
    id: str
    body: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    visible_at: float
    receive_count: int = 0
    lease_token: Optional[str] = None


class InMemoryTransport(ITransport):
    """Single-process broker with visibility timeouts and long polling.

    Meant for local runs and tests. Leases are enforced lazily against the
    injected clock; long polls wait on real time.
    """

    poll_interval = 0.05

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # message_id -> StoredMessage, insertion ordered
        self._messages: Dict[str, StoredMessage] = {}
        # lease_token -> message_id
        self._tokens: Dict[str, str] = {}
        # lease_token -> lease expiry, kept until the lease would have lapsed
        self._deleted_tokens: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._arrived: Optional[asyncio.Condition] = None

    def _condition(self) -> asyncio.Condition:
        if self._arrived is None:
            self._arrived = asyncio.Condition(self._lock)
        return self._arrived

    async def send(
        self, body: str, attributes: Dict[str, str], delay_seconds: int = 0
    ) -> str:
        check_size(body, attributes, self.max_payload_size)
        cond = self._condition()
        async with cond:
            msg_id = str(uuid.uuid4())
            self._messages[msg_id] = StoredMessage(
                id=msg_id,
                body=body,
                attributes=dict(attributes),
                visible_at=self._clock() + delay_seconds,
            )
            cond.notify_all()
            return msg_id

    def _take_visible(self, max_batch: int, lease_seconds: int) -> List[LeasedItem]:
        now = self._clock()
        leased = []
        for msg in self._messages.values():
            if len(leased) >= max_batch:
                break
            if msg.visible_at > now:
                continue
            # A lapsed lease invalidates the old token
            if msg.lease_token is not None:
                self._tokens.pop(msg.lease_token, None)
            token = uuid.uuid4().hex
            msg.lease_token = token
            msg.visible_at = now + lease_seconds
            msg.receive_count += 1
            self._tokens[token] = msg.id
            leased.append(
                LeasedItem(
                    id=msg.id,
                    body=msg.body,
                    lease_token=token,
                    lease_expiry=msg.visible_at,
                    attributes=dict(msg.attributes),
                    receive_count=msg.receive_count,
                )
            )
        return leased

    async def receive(
        self, max_batch: int, wait_seconds: int, lease_seconds: int
    ) -> List[LeasedItem]:
        cond = self._condition()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        async with cond:
            while True:
                leased = self._take_visible(max_batch, lease_seconds)
                remaining = deadline - loop.time()
                if leased or remaining <= 0:
                    return leased
                # Wake periodically so delayed and lapsed items are noticed
                try:
                    await asyncio.wait_for(
                        cond.wait(), timeout=min(remaining, self.poll_interval)
                    )
                except asyncio.TimeoutError:
                    pass

    def _live_message(self, lease_token: str) -> StoredMessage:
        msg_id = self._tokens.get(lease_token)
        msg = self._messages.get(msg_id) if msg_id else None
        if msg is None or msg.lease_token != lease_token or msg.visible_at <= self._clock():
            raise LeaseExpired(lease_token)
        return msg

    def _prune_deleted(self):
        now = self._clock()
        for token in [t for t, expiry in self._deleted_tokens.items() if expiry <= now]:
            del self._deleted_tokens[token]

    async def acknowledge(self, lease_token: str):
        async with self._lock:
            self._prune_deleted()
            if lease_token in self._deleted_tokens:
                return
            msg = self._live_message(lease_token)
            del self._messages[msg.id]
            del self._tokens[lease_token]
            self._deleted_tokens[lease_token] = msg.visible_at

    async def release(self, lease_token: str):
        cond = self._condition()
        async with cond:
            msg = self._live_message(lease_token)
            msg.visible_at = self._clock()
            msg.lease_token = None
            del self._tokens[lease_token]
            cond.notify_all()

    async def depth(self) -> int:
        """Number of messages not yet deleted, leased or not."""
        async with self._lock:
            return len(self._messages)
