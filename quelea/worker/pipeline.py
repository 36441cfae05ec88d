import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union
from quelea.core.codec import decode_body
from quelea.core.errors import MalformedPayload
from quelea.core.models import LeasedItem, ProcessingOutcome

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class Pipeline:
    """Applies a handler to leased items, one outcome per item.

    Nothing raised by a handler escapes process(); it becomes a FAILURE
    outcome so sibling items in the batch carry on. Handlers must tolerate
    being called again for the same item after a redelivery.
    """

    def __init__(self, concurrency: int = 10):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency

    async def process(self, item: LeasedItem, handler: Handler) -> ProcessingOutcome:
        try:
            payload = decode_body(item.body, item.content_type)
        except MalformedPayload as e:
            logger.warning(f"Skipping malformed item {item.id}: {e}")
            return ProcessingOutcome.skipped(item.id, f"MalformedPayload: {e}")
        except Exception as e:
            logger.exception(f"Decoding failed for item {item.id}")
            return ProcessingOutcome.skipped(
                item.id, f"MalformedPayload: {type(e).__name__}: {e}"
            )

        try:
            result = handler(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Handler failed for item {item.id}")
            return ProcessingOutcome.failure(item.id, f"{type(e).__name__}: {e}")

        return ProcessingOutcome.success(item.id)

    async def process_batch(
        self,
        items: Sequence[LeasedItem],
        handler: Handler,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> List[ProcessingOutcome]:
        """Processes items concurrently, returning outcomes in input order."""
        semaphore = semaphore or asyncio.Semaphore(self.concurrency)

        async def _bounded(item: LeasedItem) -> ProcessingOutcome:
            async with semaphore:
                return await self.process(item, handler)

        return list(await asyncio.gather(*(_bounded(item) for item in items)))
