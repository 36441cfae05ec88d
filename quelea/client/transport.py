import asyncio
import logging
import time
from typing import Any, Dict, List, Optional
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from quelea.core.errors import LeaseExpired, TransportError
from quelea.core.interfaces import ITransport
from quelea.core.models import LeasedItem

logger = logging.getLogger(__name__)

RETRYABLE_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestThrottled",
    "ServiceUnavailable",
    "InternalError",
    "InternalFailure",
    "RequestTimeout",
    "KMS.ThrottlingException",
}
INVALID_RECEIPT_CODES = {"ReceiptHandleIsInvalid"}


def _translate(e: Exception, lease_token: Optional[str] = None) -> Exception:
    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        message = str(error.get("Message", ""))
        if lease_token is not None and (
            code in INVALID_RECEIPT_CODES
            or (code == "InvalidParameterValue" and "receipt handle" in message.lower())
        ):
            return LeaseExpired(lease_token, message or None)
        retryable = code in RETRYABLE_ERROR_CODES or status >= 500
        return TransportError(f"{code}: {error.get('Message', e)}", retryable, code)
    return TransportError(str(e), retryable=True)


class SqsTransport(ITransport):
    """Transport backed by an Amazon SQS queue (or any SQS-compatible endpoint).

    boto3 is synchronous, so every call runs in a worker thread. boto3
    clients are thread-safe, so a single instance serves concurrent calls.
    """

    def __init__(self, queue_url: str, client: Any = None, **client_kwargs):
        self.queue_url = queue_url
        self._client = client if client is not None else boto3.client(
            "sqs",
            config=Config(
                read_timeout=self.max_wait_seconds + 10,
                connect_timeout=5,
                retries={"max_attempts": 1},
            ),
            **client_kwargs,
        )

    async def _call(self, operation: str, lease_token: Optional[str] = None, **params) -> Dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, QueueUrl=self.queue_url, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS {operation} failed: {e}")
            raise _translate(e, lease_token) from e

    async def send(
        self, body: str, attributes: Dict[str, str], delay_seconds: int = 0
    ) -> str:
        response = await self._call(
            "send_message",
            MessageBody=body,
            DelaySeconds=delay_seconds,
            MessageAttributes={
                key: {"DataType": "String", "StringValue": value}
                for key, value in attributes.items()
            },
        )
        return response["MessageId"]

    async def receive(
        self, max_batch: int, wait_seconds: int, lease_seconds: int
    ) -> List[LeasedItem]:
        requested_at = time.time()
        response = await self._call(
            "receive_message",
            MaxNumberOfMessages=max_batch,
            WaitTimeSeconds=wait_seconds,
            VisibilityTimeout=lease_seconds,
            MessageAttributeNames=["All"],
            AttributeNames=["ApproximateReceiveCount"],
        )
        # The visibility window opens broker-side before the response returns,
        # so measure the expiry from the request time.
        expiry = requested_at + lease_seconds
        items = []
        for msg in response.get("Messages", []):
            attributes = {
                key: value.get("StringValue", "")
                for key, value in (msg.get("MessageAttributes") or {}).items()
                if value.get("DataType", "String").startswith("String")
            }
            items.append(
                LeasedItem(
                    id=msg["MessageId"],
                    body=msg.get("Body", ""),
                    lease_token=msg["ReceiptHandle"],
                    lease_expiry=expiry,
                    attributes=attributes,
                    receive_count=int(
                        (msg.get("Attributes") or {}).get("ApproximateReceiveCount", 1)
                    ),
                )
            )
        return items

    async def acknowledge(self, lease_token: str):
        await self._call("delete_message", lease_token, ReceiptHandle=lease_token)

    async def release(self, lease_token: str):
        await self._call(
            "change_message_visibility",
            lease_token,
            ReceiptHandle=lease_token,
            VisibilityTimeout=0,
        )

    async def close(self):
        await asyncio.to_thread(self._client.close)
