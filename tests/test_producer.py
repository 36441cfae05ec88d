"""
Unit tests for Producer.
"""

import pytest

from quelea.client.producer import Producer
from quelea.core.errors import PayloadTooLarge, TransportError
from quelea.core.models import MSGPACK_CONTENT_TYPE, WorkItem


@pytest.mark.asyncio
async def test_submit_returns_broker_id(producer, transport):
    msg_id = await producer.submit(WorkItem(payload={"type": "user_signup"}))
    assert msg_id
    assert await transport.depth() == 1


@pytest.mark.asyncio
async def test_submit_sets_content_type_attribute(producer, consumer):
    await producer.send({"n": 1}, content_type=MSGPACK_CONTENT_TYPE, attributes={"source": "tests"})
    [item] = await consumer.lease(wait_seconds=0)
    assert item.attributes["ContentType"] == MSGPACK_CONTENT_TYPE
    assert item.attributes["source"] == "tests"


@pytest.mark.asyncio
async def test_oversize_payload_rejected_before_send(failing_transport):
    transport = failing_transport(TransportError("should not be called"))
    producer = Producer(transport)
    with pytest.raises(PayloadTooLarge):
        await producer.send({"blob": "x" * (256 * 1024)})
    assert transport.sent == 0


@pytest.mark.asyncio
async def test_delayed_item_not_visible_until_delay_passes(producer, consumer, clock):
    await producer.send({"n": 1}, delay_seconds=5)
    assert await consumer.lease(wait_seconds=0) == []
    clock.advance(5)
    assert len(await consumer.lease(wait_seconds=0)) == 1


@pytest.mark.asyncio
async def test_transport_error_passes_through_without_retry(failing_transport):
    transport = failing_transport(TransportError("throttled", retryable=True))
    producer = Producer(transport)
    with pytest.raises(TransportError) as exc:
        await producer.send({"n": 1})
    assert exc.value.retryable is True
    assert transport.sent == 1


@pytest.mark.asyncio
async def test_submit_many_preserves_order(producer, consumer):
    ids = await producer.submit_many(WorkItem(payload={"n": i}) for i in range(3))
    items = await consumer.lease(wait_seconds=0)
    assert [i.id for i in items] == ids


def test_work_item_delay_bounded():
    with pytest.raises(ValueError):
        WorkItem(payload={}, delay_seconds=901)
