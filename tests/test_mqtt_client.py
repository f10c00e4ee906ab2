# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring,protected-access,unused-argument,too-few-public-methods,no-member,use-implicit-booleaness-not-comparison,line-too-long,invalid-name,too-many-statements,too-many-instance-attributes,wrong-import-position,wrong-import-order,deprecated-module,too-many-locals,too-many-lines,attribute-defined-outside-init,unexpected-keyword-arg,duplicate-code
import asyncio
import json

import pytest

import mqtt_client
from backoff import ReconnectBackoff
from credentials import MQTTSettings
from models import FIELD_NAMES
from mqtt_client import ProfileMQTTClient
from mqtt_dummy_helpers import DummyClient, DummyMessage, DummyMQTTModule, DummyResult

PREFIX = "heatzone/profiles/wohnzimmer"


def _make_client(monkeypatch, on_message=None, **settings):
    monkeypatch.setattr(mqtt_client, "MQTT_AVAILABLE", True)
    monkeypatch.setattr(mqtt_client, "mqtt", DummyMQTTModule, raising=False)
    params = {"host": "broker", "port": 1883, "username": "ha", "password": "pw"}
    params.update(settings)
    return ProfileMQTTClient(MQTTSettings(**params), PREFIX, on_message=on_message)


def _connected_client(monkeypatch, on_message=None):
    client = _make_client(monkeypatch, on_message=on_message)
    assert client.connect(timeout=0.5) is True
    return client


def test_connect_without_paho(monkeypatch):
    monkeypatch.setattr(mqtt_client, "MQTT_AVAILABLE", False)
    client = ProfileMQTTClient(MQTTSettings(host="h", port=1), PREFIX)
    assert client.connect() is False
    assert client.is_ready() is False


def test_connect_success(monkeypatch):
    client = _connected_client(monkeypatch)
    paho = client.client
    assert client.is_ready() is True
    assert client.client_id.startswith("ha-heating-")
    assert paho.init_kwargs["client_id"] == client.client_id
    assert paho.init_kwargs["transport"] == "tcp"
    assert paho.init_kwargs["protocol"] == DummyMQTTModule.MQTTv311
    assert paho._auth == ("ha", "pw")
    assert paho.connect_args[:2] == ("broker", 1883)
    assert paho.loop_started is True


def test_connect_websockets_without_auth(monkeypatch):
    client = _make_client(monkeypatch, username="", password="", transport="websockets", port=9001)
    assert client.connect(timeout=0.5) is True
    assert client.client._auth is None
    assert client.client.init_kwargs["transport"] == "websockets"


def test_connect_refused_times_out(monkeypatch):
    class RefusingClient(DummyClient):
        connect_rc = 5

    client = _make_client(monkeypatch)
    monkeypatch.setattr(DummyMQTTModule, "Client", RefusingClient)
    assert client.connect(timeout=0.0) is False
    assert client.client is None
    assert client.connected is False
    assert client.last_error_msg == "Not authorized"


def test_connect_exception(monkeypatch):
    class BrokenClient(DummyClient):
        def connect(self, host, port, keepalive):
            raise OSError("connection refused")

    client = _make_client(monkeypatch)
    monkeypatch.setattr(DummyMQTTModule, "Client", BrokenClient)
    assert client.connect(timeout=0.1) is False
    assert client.client is None
    assert "connection refused" in client.last_error_msg


def test_subscribe_all_fields(monkeypatch):
    client = _connected_client(monkeypatch)
    topics = client.subscribe()
    assert topics == [f"{PREFIX}/{name}" for name in FIELD_NAMES]
    assert [t for t, _ in client.client.subscribed] == topics


def test_subscribe_before_connect_is_replayed(monkeypatch):
    client = _make_client(monkeypatch)
    assert client.subscribe(["Temp1", "Day1"]) == []
    assert client.connect(timeout=0.5) is True
    assert client.subscribed_topics == [f"{PREFIX}/Temp1", f"{PREFIX}/Day1"]
    assert len(client.client.subscribed) == 2


def test_subscribe_failure_skips_topic(monkeypatch):
    client = _connected_client(monkeypatch)

    def flaky_subscribe(topic, qos=0):
        if topic.endswith("/Temp2"):
            raise RuntimeError("boom")

    client.client.subscribe = flaky_subscribe
    topics = client.subscribe(["Temp1", "Temp2", "Temp3"])
    assert topics == [f"{PREFIX}/Temp1", f"{PREFIX}/Temp3"]


def test_prefix_is_lowercased(monkeypatch):
    monkeypatch.setattr(mqtt_client, "MQTT_AVAILABLE", True)
    client = ProfileMQTTClient(MQTTSettings(host="h", port=1), "Heatzone/Profiles/Bad")
    assert client.topic_for("Temp1") == "heatzone/profiles/bad/Temp1"


def test_publish_not_connected(monkeypatch):
    client = _make_client(monkeypatch)
    assert client.publish("Temp1", 21.0) is False
    assert client.publish_failed == 1
    assert client.publish_count == 0


def test_publish_retained_json(monkeypatch):
    client = _connected_client(monkeypatch)
    assert client.publish("Day1", [{"From": "0:00", "To": "24:00", "TempID": 0}]) is True
    assert client.publish("Activated", True) is True

    (topic, payload, qos, retain), (_, active_payload, _, _) = client.client.published
    assert topic == f"{PREFIX}/Day1"
    assert json.loads(payload) == [{"From": "0:00", "To": "24:00", "TempID": 0}]
    assert active_payload == "true"
    assert qos == mqtt_client.MQTT_PUBLISH_QOS
    assert retain is mqtt_client.MQTT_RETAIN
    assert client.publish_count == 2


def test_publish_error_result(monkeypatch):
    client = _connected_client(monkeypatch)
    client.client.publish = lambda *args, **kwargs: DummyResult(rc=4)
    assert client.publish("Temp1", 20.0) is False
    assert client.publish_failed == 1


def test_publish_exception(monkeypatch):
    client = _connected_client(monkeypatch)

    def broken(*args, **kwargs):
        raise RuntimeError("socket gone")

    client.client.publish = broken
    assert client.publish("Temp1", 20.0) is False
    assert client.publish_failed == 1
    assert client.last_error_msg == "socket gone"


def test_on_message_without_loop_delivers_inline(monkeypatch):
    received = []
    client = _make_client(monkeypatch, on_message=lambda t, p: received.append((t, p)))
    client._on_message(None, None, DummyMessage(f"{PREFIX}/Temp1", b"21.5"))
    client._on_message(None, None, DummyMessage(f"{PREFIX}/Temp2", b"\xff20"))
    assert received[0] == (f"{PREFIX}/Temp1", "21.5")
    assert received[1][1].endswith("20")
    assert client.messages_received == 2


def test_on_message_is_marshalled_to_loop(monkeypatch):
    received = []
    client = _make_client(monkeypatch, on_message=lambda t, p: received.append(p))

    async def run():
        client.attach_loop(asyncio.get_running_loop())
        client._on_message(None, None, DummyMessage(f"{PREFIX}/Temp1", b"19"))
        assert received == []
        await asyncio.sleep(0)
        assert received == ["19"]

    asyncio.run(run())


def test_on_message_handler_error_is_logged(monkeypatch, caplog):
    def handler(topic, payload):
        raise RuntimeError("bad handler")

    client = _make_client(monkeypatch, on_message=handler)
    client._on_message(None, None, DummyMessage(f"{PREFIX}/Temp1", b"19"))
    assert "Message handler failed" in caplog.text


def test_on_disconnect(monkeypatch):
    client = _connected_client(monkeypatch)
    client._on_disconnect(client.client, None, 0)
    assert client.is_ready() is False
    assert client.last_error_msg == ""

    client._on_disconnect(client.client, None, 7)
    assert "Unexpected disconnect" in client.last_error_msg


def test_disconnect_unsubscribes_and_cleans_up(monkeypatch):
    client = _connected_client(monkeypatch)
    client.subscribe(["Temp1"])
    paho = client.client
    client.disconnect()
    assert paho.unsubscribed == [f"{PREFIX}/Temp1"]
    assert paho.loop_stopped is True
    assert paho.disconnected is True
    assert client.client is None
    assert client.subscribed_topics == []


def test_health_check_gives_up_after_max_attempts(monkeypatch):
    client = _make_client(monkeypatch)
    client._backoff = ReconnectBackoff(base_delay_s=0.0, max_delay_s=0.0, max_attempts=2)
    calls = []

    def failing_connect(timeout=None):
        calls.append(timeout)
        return False

    async def fast_sleep(_delay):
        return None

    client.connect = failing_connect
    monkeypatch.setattr(mqtt_client.asyncio, "sleep", fast_sleep)
    asyncio.run(client.health_check_loop())
    assert len(calls) == 2
    assert client.reconnect_attempts == 2


def test_health_check_reconnects(monkeypatch):
    client = _make_client(monkeypatch)
    sleeps = []

    def good_connect(timeout=None):
        client.client = DummyClient()
        client.connected = True
        return True

    async def counting_sleep(delay):
        sleeps.append(delay)
        if len(sleeps) >= 3:
            raise asyncio.CancelledError

    client.connect = good_connect
    monkeypatch.setattr(mqtt_client.asyncio, "sleep", counting_sleep)
    with pytest.raises(asyncio.CancelledError):
        asyncio.run(client.health_check_loop())
    assert client.is_ready() is True
    assert client.reconnect_attempts == 1
    assert sleeps == [float(client.HEALTH_CHECK_INTERVAL)] * 3


def test_start_and_stop_health_check(monkeypatch):
    client = _make_client(monkeypatch)

    async def run():
        client.start_health_check()
        task = client._health_check_task
        assert task is not None
        client.start_health_check()
        assert client._health_check_task is task
        await client.stop_health_check()
        assert task.cancelled()
        assert client._health_check_task is None
        await client.stop_health_check()

    asyncio.run(run())
