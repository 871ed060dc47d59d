"""zeptrion2mqtt.

Bridges a two-channel HTTP on/off actuator to MQTT: commands go out
as form POSTs, the device's status report comes back through a
short-lived coalescing cache and is published as channel state and
reachability.
"""

from importlib.metadata import PackageNotFoundError, version

from zeptrion2mqtt._app import App
from zeptrion2mqtt._cache import CACHE_TTL, ExpiringCache, StatusCache
from zeptrion2mqtt._clock import ClockPort, SystemClock
from zeptrion2mqtt._controller import DeviceSyncController
from zeptrion2mqtt._dispatcher import REFRESH_DELAY, CommandDispatcher
from zeptrion2mqtt._errors import (
    ERROR_TYPES,
    BridgeError,
    DeviceUnreachable,
    ErrorPayload,
    ErrorPublisher,
    InvalidCommand,
    MalformedResponse,
    UnsupportedChannel,
    build_error_payload,
)
from zeptrion2mqtt._health import HealthReporter, Reachability, build_will_config
from zeptrion2mqtt._logging import JsonFormatter, configure_logging
from zeptrion2mqtt._models import (
    ChannelId,
    ChannelLevel,
    Command,
    OnOff,
    StatusReport,
    parse_command,
)
from zeptrion2mqtt._mqtt import (
    MessageCallback,
    MockMqttClient,
    MqttClient,
    MqttPort,
    PublishedMessage,
    WillConfig,
)
from zeptrion2mqtt._reconciler import (
    ChannelSink,
    MqttChannelPublisher,
    ReachabilitySink,
    StateReconciler,
)
from zeptrion2mqtt._router import CommandRouter
from zeptrion2mqtt._scheduler import AsyncioScheduler, Job, SchedulerPort
from zeptrion2mqtt._settings import (
    DeviceSettings,
    LoggingSettings,
    MqttSettings,
    Settings,
)
from zeptrion2mqtt._transport import REQUEST_TIMEOUT, DeviceTransport, HttpDeviceTransport

try:
    __version__ = version("zeptrion2mqtt")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    "__version__",
    # App
    "App",
    "DeviceSyncController",
    # Core
    "CACHE_TTL",
    "CommandDispatcher",
    "ExpiringCache",
    "REFRESH_DELAY",
    "StateReconciler",
    "StatusCache",
    # Models
    "ChannelId",
    "ChannelLevel",
    "Command",
    "OnOff",
    "StatusReport",
    "parse_command",
    # Transport
    "DeviceTransport",
    "HttpDeviceTransport",
    "REQUEST_TIMEOUT",
    # Scheduling
    "AsyncioScheduler",
    "Job",
    "SchedulerPort",
    # Clock
    "ClockPort",
    "SystemClock",
    # Sinks and routing
    "ChannelSink",
    "CommandRouter",
    "MqttChannelPublisher",
    "ReachabilitySink",
    # Health
    "HealthReporter",
    "Reachability",
    "build_will_config",
    # Errors
    "BridgeError",
    "DeviceUnreachable",
    "ERROR_TYPES",
    "ErrorPayload",
    "ErrorPublisher",
    "InvalidCommand",
    "MalformedResponse",
    "UnsupportedChannel",
    "build_error_payload",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # MQTT
    "MessageCallback",
    "MockMqttClient",
    "MqttClient",
    "MqttPort",
    "PublishedMessage",
    "WillConfig",
    # Settings
    "DeviceSettings",
    "LoggingSettings",
    "MqttSettings",
    "Settings",
]
