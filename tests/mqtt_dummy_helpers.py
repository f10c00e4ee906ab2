# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring,protected-access
# pylint: disable=unused-argument,too-few-public-methods,no-member,use-implicit-booleaness-not-comparison,line-too-long
# pylint: disable=invalid-name,too-many-statements,too-many-instance-attributes,wrong-import-position,wrong-import-order
# pylint: disable=deprecated-module,too-many-locals,too-many-lines,attribute-defined-outside-init,unexpected-keyword-arg
# pylint: disable=duplicate-code
from models import FIELD_NAMES


class DummyResult:
    def __init__(self, rc: int = 0, mid: int = 1) -> None:
        self.rc = rc
        self.mid = mid


class DummyMessage:
    def __init__(self, topic: str, payload: bytes, retain: bool = False) -> None:
        self.topic = topic
        self.payload = payload
        self.retain = retain


class DummyClient:
    """Stands in for paho.mqtt.client.Client."""

    connect_rc = 0

    def __init__(self, *args, **kwargs) -> None:
        self.init_kwargs = kwargs
        self.published = []
        self.subscribed = []
        self.unsubscribed = []
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self._auth = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False

    def username_pw_set(self, username, password):
        self._auth = (username, password)

    def connect(self, host, port, keepalive):
        self.connect_args = (host, port, keepalive)
        if self.on_connect:
            self.on_connect(self, None, {}, self.connect_rc)

    def loop_start(self):
        self.loop_started = True

    def loop_stop(self):
        self.loop_stopped = True

    def disconnect(self):
        self.disconnected = True

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))
        return DummyResult(rc=0, mid=len(self.published))

    def subscribe(self, topic, qos=0):
        self.subscribed.append((topic, qos))

    def unsubscribe(self, topic):
        self.unsubscribed.append(topic)


class DummyMQTTModule:
    class CallbackAPIVersion:
        VERSION1 = object()

    MQTTv311 = 4
    Client = DummyClient


class FakeTransport:
    """In-memory ProfileMQTTClient used by profile-level tests."""

    def __init__(self, settings, topic_prefix, on_message=None, *, connect_ok=True):
        self.settings = settings
        self.topic_prefix = topic_prefix
        self.on_message = on_message
        self.connect_ok = connect_ok
        self.connected = False
        self.loop = None
        self.subscribed = []
        self.published = []
        self.fail_fields = set()
        self.health_check_started = False
        self.health_check_stopped = False
        self.disconnected = False
        self.messages_received = 0
        self.publish_count = 0
        self.publish_failed = 0
        self.last_error_msg = ""

    def attach_loop(self, loop):
        self.loop = loop

    def connect(self, timeout=None):
        self.connected = self.connect_ok
        return self.connect_ok

    def is_ready(self):
        return self.connected

    def subscribe(self, subtopics=FIELD_NAMES):
        self.subscribed = list(subtopics)
        return [f"{self.topic_prefix}/{s}" for s in self.subscribed]

    def publish(self, subtopic, payload):
        self.publish_count += 1
        if subtopic in self.fail_fields:
            self.publish_failed += 1
            return False
        self.published.append((subtopic, payload))
        return True

    def start_health_check(self):
        self.health_check_started = True

    async def stop_health_check(self):
        self.health_check_stopped = True

    def disconnect(self):
        self.disconnected = True
        self.connected = False
