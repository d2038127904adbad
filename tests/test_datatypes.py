import json

import pytest

from rxstream.ws import (
    Channel,
    Envelope,
    JSONEnvelopeCodec,
    TransportOptions,
    codec_factory,
)


def test_codec_factory_valid():
    assert isinstance(codec_factory("json"), JSONEnvelopeCodec)


def test_codec_factory_invalid():
    with pytest.raises(ValueError):
        codec_factory("msgpack")


def test_channel_lookup():
    assert Channel.lookup("registerOk") is Channel.REGISTER_OK
    assert Channel.lookup("serverAggregation") is Channel.SERVER_AGGREGATION
    assert Channel.lookup("RegisterOk") is None
    assert Channel.lookup("") is None


def test_channel_values_are_strings():
    assert Channel.CLIENT_REGISTER == "clientRegister"


class TestJSONEnvelopeCodec:
    def test_encode_envelope(self):
        codec = JSONEnvelopeCodec()
        raw = codec.encode(Envelope("clientRegister", {"userId": "u1", "userToken": "t1"}))
        assert json.loads(raw) == {
            "channel": "clientRegister",
            "payload": {"userId": "u1", "userToken": "t1"},
        }

    def test_encode_without_payload(self):
        assert JSONEnvelopeCodec().encode(Envelope("ping")) == '{"channel":"ping"}'

    def test_encode_mapping(self):
        raw = JSONEnvelopeCodec().encode({"channel": "x", "extra": [1, 2]})
        assert json.loads(raw) == {"channel": "x", "extra": [1, 2]}

    @pytest.mark.parametrize(
        "message, error",
        [
            ("text", TypeError),
            (42, TypeError),
            ({"channel": "x", "payload": object()}, TypeError),
            ({"channel": "x", "payload": float("inf")}, ValueError),
        ],
    )
    def test_encode_rejects(self, message, error):
        with pytest.raises(error):
            JSONEnvelopeCodec().encode(message)

    def test_decode(self):
        envelope = JSONEnvelopeCodec().decode('{"channel":"serverMessage","payload":{"k":"v"}}')
        assert envelope == Envelope("serverMessage", {"k": "v"})

    def test_decode_bytes(self):
        envelope = JSONEnvelopeCodec().decode(b'{"channel":"registerOk"}')
        assert envelope.channel == "registerOk"
        assert envelope.payload is None

    @pytest.mark.parametrize(
        "raw",
        ["", "{", "[]", '"registerOk"', "{}", '{"channel": null}', b"\xff\xfe"],
    )
    def test_decode_rejects(self, raw):
        with pytest.raises(ValueError):
            JSONEnvelopeCodec().decode(raw)


class TestTransportOptions:
    def test_defaults(self):
        options = TransportOptions()
        assert options.path == "/engine.io"
        assert options.log is True
        assert options.force_websockets is False
        assert options.secure is False
        assert options.extra_headers == {}

    @pytest.mark.parametrize(
        "url, secure",
        [
            ("wss://a.test", True),
            ("WSS://a.test", True),
            ("https://a.test:8443", True),
            ("ws://a.test", False),
            ("a.test", False),
        ],
    )
    def test_for_url(self, url, secure):
        assert TransportOptions.for_url(url).secure is secure

    def test_for_url_forwards_fields(self):
        options = TransportOptions.for_url("ws://a.test", path="/rt", log=False, force_websockets=True)
        assert options.path == "/rt"
        assert options.log is False
        assert options.force_websockets is True

    def test_for_url_copies_extra_headers(self):
        headers = {"X-Client": "tests"}
        options = TransportOptions.for_url("ws://a.test", extra_headers=headers)
        headers.clear()

        assert options.extra_headers == {"X-Client": "tests"}
        assert TransportOptions.for_url("ws://a.test").extra_headers == {}
