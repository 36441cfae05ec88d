import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional
from quelea.client.retry import RetryPolicy
from quelea.core.models import WorkItem
from quelea.runtime import QueueRuntime
from quelea.worker.pipeline import Handler

logger = logging.getLogger(__name__)

# Time kept back from the invocation budget for processing and acknowledging.
DEFAULT_SAFETY_MARGIN_MS = 5_000


def log_payload(payload: Dict[str, Any]):
    """Default handler: records the payload and succeeds."""
    logger.info(f"Processing message: {json.dumps(payload, default=str)}")


def extract_payloads(event: Any) -> List[Dict[str, Any]]:
    """Pulls payloads out of an SQS-style event, or treats the event as one."""
    if not isinstance(event, dict):
        raise ValueError(f"Unsupported event type: {type(event).__name__}")

    records = event.get("Records")
    if records is None:
        return [event]

    if not isinstance(records, list):
        raise ValueError(f"Records must be a list, got {type(records).__name__}")

    payloads = []
    for record in records:
        if not isinstance(record, dict):
            raise ValueError(f"Unsupported record type: {type(record).__name__}")
        body = record.get("body")
        if isinstance(body, dict):
            payloads.append(body)
            continue
        try:
            decoded = json.loads(body)
        except (TypeError, ValueError, RecursionError):
            decoded = None
        payloads.append(decoded if isinstance(decoded, dict) else {"body": body})
    return payloads


def budget_wait_seconds(
    context: Any, wait_seconds: int, safety_margin_ms: int = DEFAULT_SAFETY_MARGIN_MS
) -> int:
    """Caps the long-poll wait so the cycle finishes inside the invocation budget."""
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return wait_seconds
    budget_ms = remaining() - safety_margin_ms
    return max(0, min(wait_seconds, int(budget_ms // 1000)))


async def handle_event(
    runtime: QueueRuntime,
    event: Any,
    context: Any,
    handler: Handler = log_payload,
    safety_margin_ms: int = DEFAULT_SAFETY_MARGIN_MS,
    retry: Optional[RetryPolicy] = None,
) -> Dict[str, Any]:
    """Re-submits the event's payloads, then runs one processing cycle.

    Submissions are retried on retryable transport errors. CycleAborted
    propagates so the invoker sees the whole invocation fail.
    """
    retry = retry or RetryPolicy()
    message_ids = []
    for payload in extract_payloads(event):
        item = WorkItem(payload=payload)
        message_ids.append(await retry.run(lambda: runtime.producer.submit(item)))
    logger.info(f"Submitted {len(message_ids)} message(s) from trigger event")

    wait_seconds = budget_wait_seconds(
        context, runtime.settings.wait_seconds, safety_margin_ms
    )
    summary = await runtime.run_cycle(handler, wait_seconds=wait_seconds)
    result = summary.model_dump(mode="json")
    result["submitted"] = message_ids
    return result


def make_handler(
    runtime_factory: Callable[[], QueueRuntime],
    handler: Handler = log_payload,
    safety_margin_ms: int = DEFAULT_SAFETY_MARGIN_MS,
) -> Callable[[Any, Any], Dict[str, Any]]:
    """Builds a synchronous entry point for function-as-a-service runtimes.

    The runtime and its event loop are created on the first invocation and
    reused by every later one in the same process.
    """
    state: Dict[str, Any] = {}

    def entry(event: Any, context: Any) -> Dict[str, Any]:
        loop: Optional[asyncio.AbstractEventLoop] = state.get("loop")
        if loop is None:
            loop = state["loop"] = asyncio.new_event_loop()
            state["runtime"] = runtime_factory()
        return loop.run_until_complete(
            handle_event(state["runtime"], event, context, handler, safety_margin_ms)
        )

    return entry
