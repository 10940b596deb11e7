import json

import pytest

from shared.protocol import (
    CATALOG,
    Accept,
    ConnRole,
    FrameKind,
    HTTPReqBody,
    HTTPReqEnd,
    HTTPReqHead,
    HTTPResBody,
    HTTPResEnd,
    HTTPResHead,
    IAm,
    KindFamily,
    MalformedFrame,
    Mount,
    NeedBand,
    PayloadDecodeError,
    PayloadShape,
    ProtocolViolation,
    UnknownKind,
    Unmount,
    decode_frame,
    decode_message,
    encode_frame,
    encode_message,
    family_of,
    is_kind,
    kinds_in_family,
)

SAMPLES = [
    IAm(conn_kind=ConnRole.CELL),
    IAm(conn_kind=ConnRole.BAND, uuid="6f1c2d9e-session"),
    Accept(uuid="6f1c2d9e-session"),
    Mount(host="example.com", path="/api"),
    Mount(host="", path=""),
    Unmount(host="example.com", path="/api"),
    NeedBand(count=3),
    HTTPReqHead(method="GET", path="/"),
    HTTPReqHead(
        remote_addr_real="10.0.0.2:5123",
        remote_addr="203.0.113.9",
        method="POST",
        scheme="https",
        host="example.com",
        port=443,
        path="/submit",
        fragment="top",
        query={"q": ["a", "b"], "empty": [""]},
        proto="HTTP/1.1",
        proto_major=1,
        proto_minor=1,
        headers={"Accept": ["text/html", "application/json"]},
        form={"name": ["bee"]},
    ),
    HTTPReqBody(data=b"chunk"),
    HTTPReqBody(data=b""),
    HTTPReqEnd(),
    HTTPResHead(status_code=404, headers={}),
    HTTPResBody(data=bytes(range(256))),
    HTTPResEnd(),
]


def test_tags_are_fixed_wire_values():
    assert FrameKind.IAM == 0x00
    assert FrameKind.ACCEPT == 0x08
    assert FrameKind.MOUNT == 0x10
    assert FrameKind.UNMOUNT == 0x11
    assert FrameKind.NEED_BAND == 0x20
    assert FrameKind.HTTP_REQ_HEAD == 0x30
    assert FrameKind.HTTP_REQ_BODY == 0x31
    assert FrameKind.HTTP_REQ_END == 0x32
    assert FrameKind.HTTP_RES_HEAD == 0x38
    assert FrameKind.HTTP_RES_BODY == 0x39
    assert FrameKind.HTTP_RES_END == 0x3A
    assert set(CATALOG) == set(FrameKind)


def test_families_follow_leading_nibble():
    assert family_of(0x08) is KindFamily.SETUP
    assert family_of(0x11) is KindFamily.MOUNTING
    assert family_of(0x20) is KindFamily.SCALING
    assert family_of(0x37) is KindFamily.HTTP_REQUEST
    assert family_of(0x38) is KindFamily.HTTP_RESPONSE
    assert family_of(0x40) is None
    assert is_kind(0x3A)
    assert not is_kind(0x33)
    assert list(kinds_in_family(KindFamily.HTTP_RESPONSE)) == [
        FrameKind.HTTP_RES_HEAD,
        FrameKind.HTTP_RES_BODY,
        FrameKind.HTTP_RES_END,
    ]


def test_catalog_shapes():
    assert CATALOG[FrameKind.HTTP_REQ_BODY].shape is PayloadShape.RAW
    assert CATALOG[FrameKind.HTTP_RES_END].shape is PayloadShape.EMPTY
    assert CATALOG[FrameKind.MOUNT].shape is PayloadShape.STRUCTURED


@pytest.mark.parametrize("message", SAMPLES, ids=lambda m: type(m).__name__)
def test_decode_encode_roundtrip(message):
    decoded = decode_message(encode_message(message))
    assert type(decoded) is type(message)
    assert decoded == message


def test_decode_frame_splits_tag_and_payload():
    assert decode_frame(b"\x31abc") == (0x31, b"abc")
    assert decode_frame(b"\x32") == (0x32, b"")


def test_decode_empty_frame_is_malformed():
    with pytest.raises(MalformedFrame):
        decode_frame(b"")
    with pytest.raises(MalformedFrame):
        decode_message(b"")


def test_encode_prepends_tag_to_payload():
    assert encode_frame(FrameKind.HTTP_RES_BODY, b"ok") == b"\x39ok"
    assert encode_message(HTTPReqBody(data=b"\x00\x01")) == b"\x31\x00\x01"
    assert encode_message(HTTPResEnd()) == b"\x3a"


def test_structured_payload_uses_camel_case_json():
    frame = encode_message(IAm(conn_kind=ConnRole.BAND, uuid="abc"))
    assert frame[0] == 0x00
    assert json.loads(frame[1:]) == {"connKind": 1, "uuid": "abc"}

    frame = encode_message(HTTPResHead(status_code=201, headers={"X-A": ["1"]}))
    assert json.loads(frame[1:]) == {"statusCode": 201, "headers": {"X-A": ["1"]}}


def test_unknown_kind_is_a_protocol_violation():
    with pytest.raises(UnknownKind) as excinfo:
        decode_message(b"\x01{}")
    assert isinstance(excinfo.value, ProtocolViolation)


def test_bad_structured_payloads():
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x10not json")
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x10[1, 2]")
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x20" + json.dumps({"count": 0}).encode())
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x30" + json.dumps({"method": "GET"}).encode())
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x30" + json.dumps({"method": "GET", "path": "/", "query": {"a": "b"}}).encode())


def test_empty_kind_with_payload_is_rejected():
    with pytest.raises(PayloadDecodeError):
        decode_message(b"\x32extra")


def test_request_head_header_lookup_is_case_insensitive():
    head = HTTPReqHead(method="GET", path="/", headers={"Content-Type": ["text/plain"]})
    assert head.get_header("content-type") == "text/plain"
    assert head.get_header("x-missing", "none") == "none"
