"""
Publish path: transports and the scheduler driving scheduled definitions.
"""

from querybridge.publish.scheduler import (
    PublishScheduler,
    PublishTask,
    ScheduleState,
    encode_payload,
)
from querybridge.publish.transport import (
    MqttTransport,
    PublishTransport,
    RedisTransport,
    build_transport,
)

__all__ = [
    "MqttTransport",
    "PublishScheduler",
    "PublishTask",
    "PublishTransport",
    "RedisTransport",
    "ScheduleState",
    "build_transport",
    "encode_payload",
]
