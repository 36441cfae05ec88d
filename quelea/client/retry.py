import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar
from pydantic import BaseModel, Field
from quelea.core.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Caller-side retry for retryable transport errors.

    Producer and Consumer never retry on their own; wrap calls with this
    policy where retrying is wanted.
    """

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.2, ge=0)
    max_delay: float = Field(default=5.0, ge=0)
    jitter: float = Field(default=0.1, ge=0, le=1)

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay * (1 + random.uniform(-self.jitter, self.jitter))

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except TransportError as e:
                if not e.retryable or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Retryable transport error (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                attempt += 1
