import base64
import binascii
import json
import msgpack
from typing import Any, Dict, Mapping, Tuple
from .errors import MalformedPayload, PayloadTooLarge
from .models import JSON_CONTENT_TYPE, MSGPACK_CONTENT_TYPE

CONTENT_TYPE_ATTRIBUTE = "ContentType"
SUPPORTED_CONTENT_TYPES = (JSON_CONTENT_TYPE, MSGPACK_CONTENT_TYPE)


def encode_payload(payload: Mapping[str, Any], content_type: str = JSON_CONTENT_TYPE) -> str:
    """Serialize a payload into a text body for the given content type.

    msgpack bodies are base64 wrapped since queue bodies must be text.
    """
    if content_type == JSON_CONTENT_TYPE:
        try:
            return json.dumps(payload, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Payload is not JSON serializable: {e}") from e

    if content_type == MSGPACK_CONTENT_TYPE:
        try:
            packed = msgpack.packb(payload)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Payload is not msgpack serializable: {e}") from e
        if not isinstance(packed, bytes):
            raise TypeError("msgpack.packb did not return bytes")
        return base64.b64encode(packed).decode("ascii")

    raise ValueError(f"Unsupported content type: {content_type}")


def decode_body(body: str, content_type: str = JSON_CONTENT_TYPE) -> Dict[str, Any]:
    """Inverse of encode_payload; raises MalformedPayload on any decode failure."""
    if content_type == JSON_CONTENT_TYPE:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError, RecursionError) as e:
            raise MalformedPayload(f"invalid JSON body: {e}") from e
    elif content_type == MSGPACK_CONTENT_TYPE:
        try:
            payload = msgpack.unpackb(base64.b64decode(body, validate=True))
        except (binascii.Error, ValueError, TypeError, RecursionError) as e:
            raise MalformedPayload(f"invalid msgpack body: {e}") from e
    else:
        raise MalformedPayload(f"unsupported content type: {content_type}")

    if not isinstance(payload, dict):
        raise MalformedPayload(f"payload is a {type(payload).__name__}, not a mapping")
    return payload


def check_size(body: str, attributes: Mapping[str, str], limit: int) -> int:
    """Returns the wire size of a message, raising PayloadTooLarge past limit."""
    size = len(body.encode("utf-8"))
    for key, value in attributes.items():
        size += len(key.encode("utf-8")) + len(value.encode("utf-8"))
    if size > limit:
        raise PayloadTooLarge(size, limit)
    return size


def pack_message(payload: Mapping[str, Any], content_type: str, extra: Mapping[str, str], limit: int) -> Tuple[str, Dict[str, str]]:
    body = encode_payload(payload, content_type)
    attributes = dict(extra)
    attributes[CONTENT_TYPE_ATTRIBUTE] = content_type
    check_size(body, attributes, limit)
    return body, attributes
