import logging
import time
from typing import Callable, List, Optional
from pydantic import BaseModel, Field
from .models import CycleState

logger = logging.getLogger(__name__)


class CycleEvent(BaseModel):
    cycle_id: str
    state: CycleState
    decision: str
    item_id: Optional[str] = None
    reason: Optional[str] = None
    ts: float = Field(default_factory=time.time)


EventSink = Callable[[CycleEvent], None]


def log_sink(event: CycleEvent):
    level = logging.WARNING if event.reason else logging.INFO
    logger.log(
        level,
        f"[{event.cycle_id}] {event.state.value}: {event.decision}"
        + (f" item={event.item_id}" if event.item_id else "")
        + (f" reason={event.reason}" if event.reason else ""),
        extra={"event": event.model_dump(mode="json")},
    )


class EventBus:
    """Fans cycle events out to sinks; a failing sink never breaks a cycle."""

    def __init__(self, sinks: Optional[List[EventSink]] = None):
        self._sinks: List[EventSink] = list(sinks) if sinks is not None else [log_sink]

    def subscribe(self, sink: EventSink):
        self._sinks.append(sink)

    def emit(
        self,
        cycle_id: str,
        state: CycleState,
        decision: str,
        item_id: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        event = CycleEvent(
            cycle_id=cycle_id,
            state=state,
            decision=decision,
            item_id=item_id,
            reason=reason,
        )
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception("Event sink failed")
