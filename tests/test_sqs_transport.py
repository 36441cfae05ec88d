"""
Unit tests for SqsTransport against a stubbed boto3 client.
"""

import boto3
import pytest
from botocore.stub import Stubber

from quelea.client.transport import SqsTransport
from quelea.core.errors import LeaseExpired, TransportError

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/work"


@pytest.fixture
def sqs():
    client = boto3.client(
        "sqs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.mark.asyncio
async def test_send_passes_body_delay_and_attributes(sqs):
    client, stubber = sqs
    stubber.add_response(
        "send_message",
        {"MessageId": "m-1"},
        {
            "QueueUrl": QUEUE_URL,
            "MessageBody": '{"a":1}',
            "DelaySeconds": 3,
            "MessageAttributes": {
                "ContentType": {"DataType": "String", "StringValue": "application/json"}
            },
        },
    )
    transport = SqsTransport(QUEUE_URL, client=client)
    assert await transport.send('{"a":1}', {"ContentType": "application/json"}, 3) == "m-1"


@pytest.mark.asyncio
async def test_receive_maps_messages_to_leased_items(sqs):
    client, stubber = sqs
    stubber.add_response(
        "receive_message",
        {
            "Messages": [
                {
                    "MessageId": "m-1",
                    "ReceiptHandle": "rh-1",
                    "Body": '{"a":1}',
                    "Attributes": {"ApproximateReceiveCount": "3"},
                    "MessageAttributes": {
                        "ContentType": {"DataType": "String", "StringValue": "application/json"}
                    },
                }
            ]
        },
        {
            "QueueUrl": QUEUE_URL,
            "MaxNumberOfMessages": 10,
            "WaitTimeSeconds": 20,
            "VisibilityTimeout": 30,
            "MessageAttributeNames": ["All"],
            "AttributeNames": ["ApproximateReceiveCount"],
        },
    )
    transport = SqsTransport(QUEUE_URL, client=client)
    [item] = await transport.receive(10, 20, 30)

    assert item.id == "m-1"
    assert item.lease_token == "rh-1"
    assert item.receive_count == 3
    assert item.content_type == "application/json"


@pytest.mark.asyncio
async def test_receive_without_messages_is_empty(sqs):
    client, stubber = sqs
    stubber.add_response("receive_message", {})
    transport = SqsTransport(QUEUE_URL, client=client)
    assert await transport.receive(10, 1, 30) == []


@pytest.mark.asyncio
async def test_acknowledge_deletes_by_receipt_handle(sqs):
    client, stubber = sqs
    stubber.add_response("delete_message", {}, {"QueueUrl": QUEUE_URL, "ReceiptHandle": "rh-1"})
    await SqsTransport(QUEUE_URL, client=client).acknowledge("rh-1")


@pytest.mark.asyncio
async def test_release_sets_visibility_to_zero(sqs):
    client, stubber = sqs
    stubber.add_response(
        "change_message_visibility",
        {},
        {"QueueUrl": QUEUE_URL, "ReceiptHandle": "rh-1", "VisibilityTimeout": 0},
    )
    await SqsTransport(QUEUE_URL, client=client).release("rh-1")


@pytest.mark.asyncio
async def test_invalid_receipt_handle_is_lease_expired(sqs):
    client, stubber = sqs
    stubber.add_client_error("delete_message", service_error_code="ReceiptHandleIsInvalid", http_status_code=400)
    with pytest.raises(LeaseExpired) as exc:
        await SqsTransport(QUEUE_URL, client=client).acknowledge("rh-old")
    assert exc.value.lease_token == "rh-old"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code,status,retryable",
    [
        ("ThrottlingException", 400, True),
        ("InternalError", 500, True),
        ("AccessDenied", 403, False),
    ],
)
async def test_client_errors_carry_retryable_flag(sqs, code, status, retryable):
    client, stubber = sqs
    stubber.add_client_error("send_message", service_error_code=code, http_status_code=status)
    with pytest.raises(TransportError) as exc:
        await SqsTransport(QUEUE_URL, client=client).send("{}", {})
    assert exc.value.retryable is retryable
    assert exc.value.code == code


@pytest.mark.asyncio
async def test_missing_queue_is_not_lease_expired(sqs):
    client, stubber = sqs
    stubber.add_client_error(
        "delete_message",
        service_error_code="AWS.SimpleQueueService.NonExistentQueue",
        http_status_code=400,
    )
    with pytest.raises(TransportError) as exc:
        await SqsTransport(QUEUE_URL, client=client).acknowledge("rh-1")
    assert not isinstance(exc.value, LeaseExpired)
    assert exc.value.retryable is False


@pytest.mark.asyncio
async def test_invalid_parameter_on_receipt_handle_is_lease_expired(sqs):
    client, stubber = sqs
    stubber.add_client_error(
        "change_message_visibility",
        service_error_code="InvalidParameterValue",
        service_message="Value rh-1 for parameter ReceiptHandle is invalid. Reason: The receipt handle has expired.",
        http_status_code=400,
    )
    with pytest.raises(LeaseExpired):
        await SqsTransport(QUEUE_URL, client=client).release("rh-1")
