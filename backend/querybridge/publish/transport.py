"""
Publish transports for scheduled definitions.

The scheduler only needs ``connected`` and ``publish(topic, payload)``.
Publishing is fire-and-forget: no delivery acknowledgment is awaited and
messages are not retained.
"""

import logging
import threading
import time
from typing import Protocol

import paho.mqtt.client as mqtt
import redis

from querybridge.core.config import Settings, settings

_LOG = logging.getLogger(__name__)


class PublishTransport(Protocol):
    @property
    def connected(self) -> bool: ...

    def publish(self, topic: str, payload: bytes) -> None: ...

    def start(self) -> None: ...

    def close(self) -> None: ...


class MqttTransport:
    """paho-mqtt client running its network loop in a background thread.

    ``start()`` connects asynchronously; paho reconnects on its own after a
    drop, and ``connected`` follows the client state.
    """

    def __init__(
        self,
        host: str,
        port: int = 1883,
        *,
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
    ) -> None:
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=client_id
        )
        if username:
            self._client.username_pw_set(username, password)
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

    @property
    def connected(self) -> bool:
        return self._client.is_connected()

    def start(self) -> None:
        _LOG.info("Connecting to MQTT broker %s:%s", self.host, self.port)
        self._client.connect_async(self.host, self.port, self.keepalive)
        self._client.loop_start()

    def publish(self, topic: str, payload: bytes) -> None:
        info = self._client.publish(topic, payload, qos=0, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(
                f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}"
            )

    def close(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            _LOG.warning("MQTT connection refused: %s", reason_code)
        else:
            _LOG.info("MQTT connected to %s:%s", self.host, self.port)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        _LOG.warning("MQTT disconnected: %s", reason_code)


class RedisTransport:
    """Redis PUBLISH. ``connected`` is the last PING result, refreshed
    once it is older than ``ping_interval`` seconds."""

    def __init__(self, url: str, *, ping_interval: float = 5.0) -> None:
        self._client = redis.Redis.from_url(
            url, socket_connect_timeout=2, socket_timeout=2
        )
        self._ping_interval = ping_interval
        self._lock = threading.Lock()
        self._connected = False
        self._checked_at: float | None = None

    @property
    def connected(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if self._checked_at is None or now - self._checked_at > self._ping_interval:
                self._connected = self._ping()
                self._checked_at = now
            return self._connected

    def start(self) -> None:
        if not self.connected:
            _LOG.warning("Redis unavailable; scheduled queries wait for it")

    def publish(self, topic: str, payload: bytes) -> None:
        self._client.publish(topic, payload)

    def close(self) -> None:
        self._client.close()

    def _ping(self) -> bool:
        try:
            self._client.ping()
            return True
        except redis.RedisError as e:
            _LOG.debug("Redis ping failed: %s", e)
            return False


def build_transport(s: Settings | None = None) -> PublishTransport:
    """Transport selected by PUBLISH_TRANSPORT (not started)."""
    s = s or settings
    if s.PUBLISH_TRANSPORT == "redis":
        return RedisTransport(s.REDIS_URL)
    return MqttTransport(
        s.MQTT_HOST,
        s.MQTT_PORT,
        client_id=s.MQTT_CLIENT_ID,
        username=s.MQTT_USERNAME,
        password=s.MQTT_PASSWORD,
        keepalive=s.MQTT_KEEPALIVE,
    )
