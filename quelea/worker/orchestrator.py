import asyncio
import logging
import uuid
from typing import List, Optional
from quelea.client.consumer import Consumer
from quelea.core.errors import CycleAborted, QueueError, TransportError
from quelea.core.events import EventBus
from quelea.core.interfaces import IDeadLetterSink
from quelea.core.models import (
    CycleState,
    CycleSummary,
    LeasedItem,
    OutcomeStatus,
    ProcessingOutcome,
)
from quelea.worker.pipeline import Handler, Pipeline

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        consumer: Consumer,
        pipeline: Pipeline,
        events: Optional[EventBus] = None,
        dead_letter: Optional[IDeadLetterSink] = None,
        max_receive_count: int = 5,
        release_failed: bool = False,
    ):
        self.consumer = consumer
        self.pipeline = pipeline
        self.events = events or EventBus()
        self.dead_letter = dead_letter
        self.max_receive_count = max_receive_count
        self.release_failed = release_failed

    async def run_cycle(
        self,
        handler: Handler,
        max_batch: int = 10,
        wait_seconds: int = 20,
        lease_seconds: int = 30,
    ) -> CycleSummary:
        """Runs one lease -> process -> acknowledge cycle.

        Only a failed lease call is fatal (CycleAborted). Acknowledgment and
        dead-letter failures are counted; the broker redelivers those items
        once their leases lapse.
        """
        cycle_id = uuid.uuid4().hex[:12]
        emit = self.events.emit

        emit(cycle_id, CycleState.LEASING, "lease")
        try:
            items = await self.consumer.lease(max_batch, wait_seconds, lease_seconds)
        except TransportError as e:
            emit(cycle_id, CycleState.LEASING, "abort", reason=str(e))
            raise CycleAborted(CycleSummary(cycle_id=cycle_id), e) from e

        emit(cycle_id, CycleState.PROCESSING, f"process {len(items)} item(s)")
        try:
            outcomes = await self.pipeline.process_batch(items, handler)
        except asyncio.CancelledError:
            # Unacknowledged items come back after their leases lapse
            self.consumer.forget(items)
            raise
        for outcome in outcomes:
            emit(
                cycle_id,
                CycleState.PROCESSING,
                outcome.status.value,
                item_id=outcome.item_id,
                reason=outcome.reason,
            )

        counts = await self._settle(cycle_id, items, outcomes)

        emit(cycle_id, CycleState.SUMMARIZING, "summarize")
        now = self.consumer.now()
        tokens = {item.lease_token for item in items}
        unsettled = [i for i in self.consumer.outstanding(now) if i.lease_token in tokens]
        ack_failures = counts.pop("ack_failures")
        expired = len(items) - sum(counts.values()) - len(unsettled)
        self.consumer.forget(items)

        summary = CycleSummary(
            cycle_id=cycle_id,
            received=len(items),
            succeeded=sum(1 for o in outcomes if o.status == OutcomeStatus.SUCCESS),
            failed=sum(1 for o in outcomes if o.status == OutcomeStatus.FAILURE),
            skipped=sum(1 for o in outcomes if o.status == OutcomeStatus.SKIPPED),
            ack_failures=ack_failures,
            pending=len(unsettled),
            expired=expired,
            outcomes=outcomes,
            **counts,
        )
        emit(
            cycle_id,
            CycleState.IDLE,
            f"done received={summary.received} succeeded={summary.succeeded} "
            f"failed={summary.failed} pending={summary.pending}",
        )
        return summary

    async def _settle(
        self,
        cycle_id: str,
        items: List[LeasedItem],
        outcomes: List[ProcessingOutcome],
    ) -> dict:
        emit = self.events.emit
        counts = {"acknowledged": 0, "dead_lettered": 0, "released": 0}
        ack_failures = 0

        for item, outcome in zip(items, outcomes):
            if outcome.ok:
                try:
                    await self.consumer.acknowledge(item)
                    counts["acknowledged"] += 1
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "acknowledged", item_id=item.id)
                except QueueError as e:
                    ack_failures += 1
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "ack_failed", item_id=item.id, reason=str(e))

            elif self.dead_letter is not None and item.receive_count >= self.max_receive_count:
                try:
                    await self.dead_letter.route(item, outcome)
                    await self.consumer.acknowledge(item)
                    counts["dead_lettered"] += 1
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "dead_lettered", item_id=item.id, reason=outcome.reason)
                except QueueError as e:
                    ack_failures += 1
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "dead_letter_failed", item_id=item.id, reason=str(e))

            elif self.release_failed and outcome.status == OutcomeStatus.FAILURE:
                try:
                    await self.consumer.release(item)
                    counts["released"] += 1
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "released", item_id=item.id)
                except QueueError as e:
                    emit(cycle_id, CycleState.ACKNOWLEDGING, "release_failed", item_id=item.id, reason=str(e))

            else:
                emit(cycle_id, CycleState.ACKNOWLEDGING, "left_for_redelivery", item_id=item.id, reason=outcome.reason)

        counts["ack_failures"] = ack_failures
        return counts

    async def run_forever(
        self,
        handler: Handler,
        max_batch: int = 10,
        wait_seconds: int = 20,
        lease_seconds: int = 30,
        stop: Optional[asyncio.Event] = None,
        max_backoff: float = 30.0,
    ) -> int:
        """Runs cycles back to back until stop is set; returns cycles completed."""
        stop = stop or asyncio.Event()
        cycles = 0
        backoff = 1.0
        while not stop.is_set():
            try:
                await self.run_cycle(handler, max_batch, wait_seconds, lease_seconds)
                cycles += 1
                backoff = 1.0
            except CycleAborted as e:
                logger.error(f"{e}; backing off {backoff:.1f}s")
                try:
                    await asyncio.wait_for(stop.wait(), timeout=backoff)
                except asyncio.TimeoutError:
                    pass
                backoff = min(backoff * 2, max_backoff)
        return cycles
