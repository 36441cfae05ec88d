"""
Unit tests for payload encoding and decoding.
"""

import base64
import json

import pytest

from quelea.core.codec import (
    CONTENT_TYPE_ATTRIBUTE,
    check_size,
    decode_body,
    encode_payload,
    pack_message,
)
from quelea.core.errors import MalformedPayload, PayloadTooLarge
from quelea.core.models import JSON_CONTENT_TYPE, MSGPACK_CONTENT_TYPE

SIGNUP = {"type": "user_signup", "data": {"username": "johndoe"}}


def test_json_body_is_compact_text():
    body = encode_payload(SIGNUP)
    assert " " not in body
    assert json.loads(body) == SIGNUP


def test_msgpack_body_is_base64_text():
    body = encode_payload(SIGNUP, MSGPACK_CONTENT_TYPE)
    base64.b64decode(body, validate=True)
    assert decode_body(body, MSGPACK_CONTENT_TYPE) == SIGNUP


def test_unsupported_content_type_rejected_on_encode():
    with pytest.raises(ValueError):
        encode_payload(SIGNUP, "text/csv")


def test_unserializable_payload_rejected_on_encode():
    with pytest.raises(ValueError):
        encode_payload({"when": object()})


@pytest.mark.parametrize(
    "body,content_type",
    [
        ("{not json", JSON_CONTENT_TYPE),
        ("[1, 2, 3]", JSON_CONTENT_TYPE),
        ('"just a string"', JSON_CONTENT_TYPE),
        ("!!not-base64!!", MSGPACK_CONTENT_TYPE),
        ('{"a": 1}', "text/plain"),
    ],
)
def test_decode_failures_are_malformed(body, content_type):
    with pytest.raises(MalformedPayload):
        decode_body(body, content_type)


def test_check_size_counts_body_and_attributes():
    assert check_size("abcd", {"k": "vv"}, 10) == 7
    with pytest.raises(PayloadTooLarge) as exc:
        check_size("abcd", {"k": "vv"}, 6)
    assert exc.value.size == 7
    assert exc.value.limit == 6


def test_pack_message_tags_content_type():
    body, attributes = pack_message(SIGNUP, JSON_CONTENT_TYPE, {"source": "test"}, 1024)
    assert attributes == {"source": "test", CONTENT_TYPE_ATTRIBUTE: JSON_CONTENT_TYPE}
    assert decode_body(body) == SIGNUP


def test_deeply_nested_json_is_malformed():
    with pytest.raises(MalformedPayload):
        decode_body("[" * 200_000)
