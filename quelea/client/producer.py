import logging
from typing import Any, Dict, Iterable, List, Optional
from quelea.core.codec import pack_message
from quelea.core.interfaces import ITransport
from quelea.core.models import JSON_CONTENT_TYPE, WorkItem

logger = logging.getLogger(__name__)


class Producer:
    def __init__(self, transport: ITransport):
        self.transport = transport

    async def submit(self, item: WorkItem) -> str:
        """Enqueues one work item and returns the broker's message id.

        Raises PayloadTooLarge before touching the transport when the encoded
        message exceeds the transport limit. TransportError is passed through
        untouched; retrying is up to the caller.
        """
        body, attributes = pack_message(
            item.payload,
            item.content_type,
            item.attributes,
            self.transport.max_payload_size,
        )
        message_id = await self.transport.send(body, attributes, item.delay_seconds)
        logger.debug(f"Submitted message {message_id} ({len(body)} bytes)")
        return message_id

    async def send(
        self,
        payload: Dict[str, Any],
        content_type: str = JSON_CONTENT_TYPE,
        delay_seconds: int = 0,
        attributes: Optional[Dict[str, str]] = None,
    ) -> str:
        item = WorkItem(
            payload=payload,
            content_type=content_type,
            delay_seconds=delay_seconds,
            attributes=attributes or {},
        )
        return await self.submit(item)

    async def submit_many(self, items: Iterable[WorkItem]) -> List[str]:
        return [await self.submit(item) for item in items]
