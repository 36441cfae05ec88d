import logging
from typing import Optional
from quelea.client.consumer import Consumer
from quelea.client.memory import InMemoryTransport
from quelea.client.producer import Producer
from quelea.client.transport import SqsTransport
from quelea.config import QueueSettings
from quelea.core.events import EventBus
from quelea.core.interfaces import IDeadLetterSink, ITransport
from quelea.core.models import CycleSummary
from quelea.worker.dead_letter import QueueDeadLetterSink
from quelea.worker.orchestrator import Orchestrator
from quelea.worker.pipeline import Handler, Pipeline

logger = logging.getLogger(__name__)


class QueueRuntime:
    """Owns one transport and the components wired to it.

    Build it once per process and reuse it for every cycle; close it on
    shutdown.
    """

    def __init__(
        self,
        settings: QueueSettings,
        transport: ITransport,
        dead_letter_transport: Optional[ITransport] = None,
        events: Optional[EventBus] = None,
    ):
        self.settings = settings
        self.transport = transport
        self.dead_letter_transport = dead_letter_transport
        self.producer = Producer(transport)
        self.consumer = Consumer(transport)
        dead_letter: Optional[IDeadLetterSink] = None
        if dead_letter_transport is not None:
            dead_letter = QueueDeadLetterSink(dead_letter_transport)
        self.orchestrator = Orchestrator(
            self.consumer,
            Pipeline(concurrency=settings.concurrency),
            events=events,
            dead_letter=dead_letter,
            max_receive_count=settings.max_receive_count,
            release_failed=settings.release_failed,
        )

    @classmethod
    def from_settings(cls, settings: QueueSettings, events: Optional[EventBus] = None) -> "QueueRuntime":
        if settings.transport == "memory":
            dlq = InMemoryTransport() if settings.dead_letter_queue_url else None
            return cls(settings, InMemoryTransport(), dlq, events)

        if not settings.queue_url:
            raise ValueError("queue_url is required for the sqs transport")
        kwargs = settings.client_kwargs()
        transport = SqsTransport(settings.queue_url, **kwargs)
        dlq = None
        if settings.dead_letter_queue_url:
            dlq = SqsTransport(settings.dead_letter_queue_url, **kwargs)
        logger.info(f"Using SQS queue {settings.queue_url}")
        return cls(settings, transport, dlq, events)

    async def run_cycle(
        self,
        handler: Handler,
        max_batch: Optional[int] = None,
        wait_seconds: Optional[int] = None,
        lease_seconds: Optional[int] = None,
    ) -> CycleSummary:
        s = self.settings
        return await self.orchestrator.run_cycle(
            handler,
            max_batch=s.max_batch if max_batch is None else max_batch,
            wait_seconds=s.wait_seconds if wait_seconds is None else wait_seconds,
            lease_seconds=s.lease_seconds if lease_seconds is None else lease_seconds,
        )

    async def close(self):
        await self.transport.close()
        if self.dead_letter_transport is not None:
            await self.dead_letter_transport.close()

    async def __aenter__(self) -> "QueueRuntime":
        return self

    async def __aexit__(self, *exc):
        await self.close()
