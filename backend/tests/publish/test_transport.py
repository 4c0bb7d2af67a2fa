"""Unit tests for publish.transport (clients mocked)."""

from unittest.mock import MagicMock, patch

import paho.mqtt.client as mqtt
import pytest
import redis

from querybridge.core.config import Settings
from querybridge.publish import MqttTransport, RedisTransport, build_transport


@patch("querybridge.publish.transport.mqtt.Client")
def test_mqtt_publish_fire_and_forget(mock_client_cls: MagicMock) -> None:
    client = mock_client_cls.return_value
    client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
    transport = MqttTransport("broker", 1883, client_id="qb", username="u", password="p")

    transport.publish("plant/status", b"{}")

    client.username_pw_set.assert_called_once_with("u", "p")
    client.publish.assert_called_once_with("plant/status", b"{}", qos=0, retain=False)


@patch("querybridge.publish.transport.mqtt.Client")
def test_mqtt_publish_error_raises(mock_client_cls: MagicMock) -> None:
    client = mock_client_cls.return_value
    client.publish.return_value.rc = mqtt.MQTT_ERR_NO_CONN
    transport = MqttTransport("broker")

    with pytest.raises(ConnectionError):
        transport.publish("t", b"{}")


@patch("querybridge.publish.transport.mqtt.Client")
def test_mqtt_lifecycle(mock_client_cls: MagicMock) -> None:
    client = mock_client_cls.return_value
    client.is_connected.return_value = True
    transport = MqttTransport("broker", 1884, keepalive=30)

    transport.start()
    assert transport.connected is True
    transport.close()

    client.connect_async.assert_called_once_with("broker", 1884, 30)
    client.loop_start.assert_called_once()
    client.disconnect.assert_called_once()
    client.loop_stop.assert_called_once()


@patch("querybridge.publish.transport.redis.Redis.from_url")
def test_redis_connected_follows_ping(mock_from_url: MagicMock) -> None:
    client = mock_from_url.return_value
    client.ping.side_effect = redis.ConnectionError("down")
    transport = RedisTransport("redis://localhost:6379/0", ping_interval=-1)

    assert transport.connected is False
    client.ping.side_effect = None
    assert transport.connected is True

    transport.publish("t", b"{}")
    client.publish.assert_called_once_with("t", b"{}")


@patch("querybridge.publish.transport.mqtt.Client")
def test_build_transport_selects_by_setting(mock_client_cls: MagicMock) -> None:
    assert isinstance(build_transport(Settings(_env_file=None, PUBLISH_TRANSPORT="mqtt")), MqttTransport)
    with patch("querybridge.publish.transport.redis.Redis.from_url"):
        assert isinstance(
            build_transport(Settings(_env_file=None, PUBLISH_TRANSPORT="redis")), RedisTransport
        )
