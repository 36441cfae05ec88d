import logging
from quelea.core.interfaces import IDeadLetterSink, ITransport
from quelea.core.models import LeasedItem, ProcessingOutcome

logger = logging.getLogger(__name__)


class QueueDeadLetterSink(IDeadLetterSink):
    """Forwards poison items, body untouched, to a separate queue."""

    def __init__(self, transport: ITransport):
        self.transport = transport

    async def route(self, item: LeasedItem, outcome: ProcessingOutcome):
        attributes = dict(item.attributes)
        attributes["SourceMessageId"] = item.id
        attributes["DeadLetterReason"] = (outcome.reason or outcome.status.value)[:256]
        attributes["ReceiveCount"] = str(item.receive_count)
        message_id = await self.transport.send(item.body, attributes)
        logger.warning(
            f"Dead-lettered item {item.id} as {message_id} after "
            f"{item.receive_count} deliveries: {outcome.reason}"
        )
        return message_id
