"""MQTT transport for the confirmation surface.

Every topic lives under ``MqttConfig.topic_base``:

- ``availability``: retained ``online`` / ``offline``, with ``offline`` as the last will
- ``transcript`` and ``confirm/set``: inbound, dispatched to registered routes
- ``confirm/state`` (retained), ``confirm/lifecycle``, ``result``, ``notice``: outbound

Routes registered before the broker answers are subscribed from ``on_connect``,
and so are re-subscribed after every reconnect.
"""

from __future__ import annotations

import json
import logging
import ssl
import threading
from collections.abc import Callable
from typing import Any

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .models import ExecutionResult, Notice, PresentationSignal

LOGGER = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"

AVAILABILITY = "availability"
TRANSCRIPT = "transcript"
CONFIRM_SET = "confirm/set"
CONFIRM_STATE = "confirm/state"
CONFIRM_LIFECYCLE = "confirm/lifecycle"
RESULT = "result"
NOTICE = "notice"

Handler = Callable[[str], None]


def tls_options(config: MqttConfig) -> dict[str, Any] | None:
    """Keyword arguments for ``Client.tls_set``, or None when TLS is off."""
    if not config.tls_enabled:
        return None
    options: dict[str, Any] = {"tls_version": getattr(ssl, "PROTOCOL_TLS_CLIENT", ssl.PROTOCOL_TLS)}
    for key, value in (("ca_certs", config.ca_cert), ("certfile", config.cert), ("keyfile", config.key)):
        if value:
            options[key] = value
    return options


class CenterMqtt:
    def __init__(self, config: MqttConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._client: mqtt.Client | None = None
        self._routes: dict[str, Handler] = {}
        self._lock = threading.Lock()

    def topic(self, suffix: str) -> str:
        return f"{self.config.topic_base}/{suffix}"

    @property
    def availability_topic(self) -> str:
        return self.topic(AVAILABILITY)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """Start the network loop; returns False when MQTT is unconfigured or unreachable."""
        if not self.config.host:
            self._logger.debug("[mqtt] No MQTT host configured; the remote surface stays offline")
            return False
        with self._lock:
            if self._client is not None:
                return True
            client = self._build_client()
            try:
                client.connect(self.config.host, self.config.port, keepalive=30)
            except Exception as exc:
                self._logger.warning("[mqtt] Failed to connect to %s:%s: %s", self.config.host, self.config.port, exc)
                return False
            client.loop_start()
            self._client = client
        self._logger.info("[mqtt] Connecting to %s:%s as %s", self.config.host, self.config.port, self.config.topic_base)
        return True

    def disconnect(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is None:
            return
        try:
            client.publish(self.availability_topic, payload=OFFLINE, qos=1, retain=True)
        except Exception as exc:
            self._logger.debug("[mqtt] Could not announce offline state: %s", exc)
        client.loop_stop()
        client.disconnect()

    def is_connected(self) -> bool:
        client = self._client
        try:
            return bool(client and client.is_connected())
        except Exception:
            return False

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"voicecmd-{self.config.topic_base}",
            clean_session=True,
        )
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or "")
        tls = tls_options(self.config)
        if tls is not None:
            client.tls_set(**tls)
        client.will_set(self.availability_topic, payload=OFFLINE, qos=1, retain=True)
        client.on_connect = self._on_connect
        client.on_message = self._on_message
        return client

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None) -> None:  # type: ignore[no-untyped-def]
        if getattr(reason_code, "is_failure", False):
            self._logger.warning("[mqtt] Broker refused connection: %s", reason_code)
            return
        client.publish(self.availability_topic, payload=ONLINE, qos=1, retain=True)
        with self._lock:
            topics = list(self._routes)
        for topic in topics:
            self._subscribe(client, topic)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def route(self, suffix: str, handler: Handler) -> str:
        """Deliver decoded payloads of ``<base>/<suffix>`` to ``handler`` (on paho's thread)."""
        topic = self.topic(suffix)
        with self._lock:
            self._routes[topic] = handler
            client = self._client
        if client is not None:
            self._subscribe(client, topic)
        return topic

    def clear_routes(self) -> None:
        with self._lock:
            topics = list(self._routes)
            self._routes.clear()
            client = self._client
        if client is not None:
            for topic in topics:
                client.unsubscribe(topic)

    def _subscribe(self, client: mqtt.Client, topic: str) -> None:
        result, _mid = client.subscribe(topic, qos=1)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("[mqtt] Subscribe to %s failed (rc=%s)", topic, result)

    def _on_message(self, _client, _userdata, message) -> None:  # type: ignore[no-untyped-def]
        with self._lock:
            handler = self._routes.get(message.topic)
        if handler is None:
            return
        try:
            handler(message.payload.decode("utf-8", errors="ignore"))
        except Exception as exc:
            self._logger.error("[mqtt] Handler for %s failed: %s", message.topic, exc, exc_info=True)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish(self, suffix: str, payload: str, *, retain: bool = False, qos: int = 0) -> None:
        client = self._client
        if client is None:
            return
        try:
            client.publish(self.topic(suffix), payload=payload, qos=qos, retain=retain)
        except Exception as exc:
            self._logger.debug("[mqtt] Publish to %s failed: %s", suffix, exc)

    def publish_snapshot(self, snapshot: dict[str, Any]) -> None:
        self.publish(CONFIRM_STATE, json.dumps(snapshot), retain=True, qos=1)

    def publish_lifecycle(self, signal: PresentationSignal) -> None:
        self.publish(CONFIRM_LIFECYCLE, signal.value)

    def publish_result(self, result: ExecutionResult) -> None:
        self.publish(RESULT, json.dumps(result.to_dict()), qos=1)

    def publish_notice(self, notice: Notice) -> None:
        self.publish(NOTICE, json.dumps(notice.to_dict()))
