"""Application configuration via pydantic-settings.

Configuration is loaded from environment variables and/or a ``.env``
file.  Every variable carries the ``ZEPTRION2MQTT_`` prefix and nested
models use ``__`` as the delimiter, e.g.
``ZEPTRION2MQTT_DEVICE__ENDPOINT=http://192.168.1.40/zrap/chscan``.

Three groups are covered:

* **Device** — where the actuator lives and how its two paths are
  built from the base endpoint.
* **MQTT** — broker connection and topic layout.
* **Logging** — level, format, optional file sink, rotation.

Protocol timings (cache TTL, settle delay, request timeout) are fixed
by the device protocol and live as constants next to the code that
uses them, not here.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# -------------------------------------------------------------------
# Sub-models (BaseModel, NOT BaseSettings: nested via composition)
# -------------------------------------------------------------------


class DeviceSettings(BaseModel):
    """Connection details of the two-channel actuator.

    Environment variables::

        ZEPTRION2MQTT_DEVICE__ENDPOINT=http://192.168.1.40
        ZEPTRION2MQTT_DEVICE__CONTROL_PATH=/zrap/chctrl/{channel}
        ZEPTRION2MQTT_DEVICE__STATUS_PATH=/zrap/chscan
        ZEPTRION2MQTT_DEVICE__NAME=living_room
        ZEPTRION2MQTT_DEVICE__PROBE_ON_STARTUP=false

    Both paths are appended verbatim to ``endpoint``.  With the
    defaults the command POST and the status GET both target the
    bare endpoint.
    """

    endpoint: str = Field(
        default="http://localhost",
        description="Base address of the device (scheme, host, optional path).",
    )
    control_path: str = Field(
        default="",
        description=(
            "Suffix for the command-submit target. "
            "May contain '{channel}', replaced by 'ch1' or 'ch2'."
        ),
    )
    status_path: str = Field(
        default="",
        description="Suffix for the status-report target.",
    )
    name: str = Field(
        default="zeptrion",
        description="Device name used in logs and error payloads.",
    )
    probe_on_startup: bool = Field(
        default=True,
        description=(
            "Fetch one status report at startup before declaring the "
            "device online.  When false, startup assumes the device "
            "is reachable without touching the network."
        ),
    )


class MqttSettings(BaseModel):
    """MQTT broker connection and topic configuration.

    Environment variables::

        ZEPTRION2MQTT_MQTT__HOST=broker.local
        ZEPTRION2MQTT_MQTT__PORT=1883
        ZEPTRION2MQTT_MQTT__USERNAME=user
        ZEPTRION2MQTT_MQTT__PASSWORD=secret
        ZEPTRION2MQTT_MQTT__TOPIC_PREFIX=zeptrion/living_room
    """

    host: str = Field(
        default="localhost",
        description="MQTT broker hostname or IP address.",
    )
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=1883,
        description="MQTT broker port.",
    )
    username: str | None = Field(
        default=None,
        description="MQTT authentication username (optional).",
    )
    password: SecretStr | None = Field(
        default=None,
        description="MQTT authentication password (optional).",
    )
    client_id: str = Field(
        default="",
        description=(
            "MQTT client identifier. When empty, App auto-generates "
            "'{name}-{hex8}' at startup."
        ),
    )
    qos: Annotated[int, Field(ge=0, le=2)] = Field(
        default=1,
        description="QoS level used for command subscriptions.",
    )
    reconnect_interval: Annotated[float, Field(gt=0)] = Field(
        default=5.0,
        description="Seconds to wait before reconnecting after connection loss.",
    )
    topic_prefix: str = Field(
        default="",
        description=(
            "Root prefix for all MQTT topics. "
            "When empty, falls back to App(name=...)."
        ),
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    ``format="json"`` (default) emits one JSON object per line for
    container log drivers; ``format="text"`` emits the classic
    timestamped line for terminals.  When ``file`` is set, logs are
    also written to a size-rotated file.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: 'json' lines or human-readable 'text'.",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Log file size in megabytes that triggers rotation.",
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for the bridge.

    Example ``.env``::

        ZEPTRION2MQTT_DEVICE__ENDPOINT=http://192.168.1.40
        ZEPTRION2MQTT_MQTT__HOST=broker.local
        ZEPTRION2MQTT_LOGGING__LEVEL=DEBUG
        ZEPTRION2MQTT_LOGGING__FORMAT=text
    """

    model_config = SettingsConfigDict(
        env_prefix="ZEPTRION2MQTT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    device: DeviceSettings = Field(
        default_factory=DeviceSettings,
        description="Device endpoint settings.",
    )
    mqtt: MqttSettings = Field(
        default_factory=MqttSettings,
        description="MQTT broker connection settings.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
