"""Tests del adaptador paho → eventos (sin red).

Ejecutar:
    pytest tests/test_transport.py -v
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from airsense_api.mqtt import (
    MessageReceived,
    MQTTTransport,
    SubscriptionResult,
    TransportClosed,
    TransportConnected,
    TransportError,
    TransportOffline,
    TransportReconnecting,
)

OK = SimpleNamespace(is_failure=False)
REFUSED = SimpleNamespace(is_failure=True)


@pytest.fixture
def events():
    return []


@pytest.fixture
def transport(events) -> MQTTTransport:
    t = MQTTTransport("wss://tigoe.net/mqtt")
    t._emit = events.append
    t._client = MagicMock()
    return t


class TestBrokerUrl:

    def test_secure_websocket(self):
        t = MQTTTransport("wss://tigoe.net/mqtt")
        assert (t.host, t.port, t.ws_path) == ("tigoe.net", 443, "/mqtt")
        assert t.use_websockets and t.use_tls

    def test_plain_tcp_with_port(self):
        t = MQTTTransport("mqtt://broker.local:1884")
        assert (t.host, t.port) == ("broker.local", 1884)
        assert not t.use_websockets and not t.use_tls

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            MQTTTransport("http://broker.local")


class TestCallbacks:

    def test_connect_success(self, transport, events):
        transport._on_connect(None, None, {}, OK)
        assert events == [TransportConnected()]

    def test_connect_refused(self, transport, events):
        transport._on_connect(None, None, {}, REFUSED)
        assert isinstance(events[0], TransportError)

    def test_connect_fail(self, transport, events):
        transport._on_connect_fail(None, None)
        assert events == [TransportError(message="Unable to connect to wss://tigoe.net/mqtt")]

    def test_unexpected_disconnect_signals_reconnect(self, transport, events):
        transport._on_disconnect(None, None, {}, "keepalive timeout")
        assert [type(e) for e in events] == [TransportClosed, TransportOffline, TransportReconnecting]

    def test_requested_disconnect_only_closes(self, transport, events):
        transport._closing = True
        transport._on_disconnect(None, None, {}, "normal")
        assert [type(e) for e in events] == [TransportClosed]

    def test_subscription_ack_maps_mid_to_topic(self, transport, events):
        transport._client.subscribe.return_value = (0, 7)
        transport.subscribe("airsense/#")
        transport._on_subscribe(None, None, 7, [OK])

        assert events == [SubscriptionResult(topic="airsense/#", granted=True)]

    def test_subscription_refused(self, transport, events):
        transport._client.subscribe.return_value = (0, 8)
        transport.subscribe("private")
        transport._on_subscribe(None, None, 8, [REFUSED])

        assert events[0].granted is False

    def test_message(self, transport, events):
        transport._on_message(None, None, SimpleNamespace(topic="airsense", payload=b"{}"))

        assert isinstance(events[0], MessageReceived)
        assert events[0].payload == b"{}"

    def test_publish_result(self, transport):
        transport._client.publish.return_value = SimpleNamespace(rc=0)
        assert transport.publish("airsense", "{}") is True

    def test_publish_without_client(self):
        assert MQTTTransport().publish("airsense", "{}") is False
