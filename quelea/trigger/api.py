from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, ValidationError
from quelea.core.errors import CycleAborted, PayloadTooLarge, TransportError
from quelea.core.models import JSON_CONTENT_TYPE, CycleSummary, WorkItem
from quelea.runtime import QueueRuntime
from quelea.trigger.handler import log_payload
from quelea.worker.pipeline import Handler


class SubmitRequest(BaseModel):
    payload: Dict[str, Any]
    content_type: str = JSON_CONTENT_TYPE
    delay_seconds: int = 0
    attributes: Dict[str, str] = Field(default_factory=dict)


class CycleRequest(BaseModel):
    max_batch: Optional[int] = None
    wait_seconds: Optional[int] = None
    lease_seconds: Optional[int] = None


def _transport_failure(e: TransportError) -> HTTPException:
    return HTTPException(status_code=503 if e.retryable else 502, detail=str(e))


def create_app(runtime: QueueRuntime, handler: Handler = log_payload) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await runtime.close()

    app = FastAPI(title="Quelea Work Queue", lifespan=lifespan)

    @app.get("/health")
    async def health():
        return {"status": "ok", "transport": runtime.settings.transport}

    @app.post("/messages")
    async def submit(request: SubmitRequest):
        try:
            item = WorkItem(**request.model_dump())
            message_id = await runtime.producer.submit(item)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except PayloadTooLarge as e:
            raise HTTPException(status_code=413, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except TransportError as e:
            raise _transport_failure(e)
        return {"message_id": message_id}

    @app.post("/cycles", response_model=CycleSummary)
    async def run_cycle(request: CycleRequest):
        try:
            return await runtime.run_cycle(
                handler,
                max_batch=request.max_batch,
                wait_seconds=request.wait_seconds,
                lease_seconds=request.lease_seconds,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except CycleAborted as e:
            raise HTTPException(status_code=503, detail=str(e))

    return app
