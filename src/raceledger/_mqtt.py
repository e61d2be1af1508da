"""MQTT subscriber for the ledger event relay.

The relay republishes every racing engine event as a JSON message under
``<events_topic>/<EventName>``. paho runs its network loop on its own
thread, so decoded events are handed back to the asyncio loop with
``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import RaceLedgerError
from raceledger.state.events import LedgerEvent


def decode_event_payload(payload: bytes) -> LedgerEvent:
    """Parse relay message bytes into a :class:`LedgerEvent`."""
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RaceLedgerError(f"Relay payload is not JSON: {payload[:64]!r}") from exc
    if not isinstance(parsed, dict):
        raise RaceLedgerError("Relay payload decoded to non-object JSON")
    try:
        return LedgerEvent.from_payload(parsed)
    except ValidationError as exc:
        raise RaceLedgerError(f"Relay payload is not a ledger event: {parsed.get('event')!r}") from exc


class LedgerEventRuntime:
    """Connects to the relay and forwards decoded events to *on_event* on *loop*."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        config: RaceLedgerConfig,
        on_event: Callable[[LedgerEvent], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._config = config
        self._on_event = on_event
        self._log = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._subscription = f"{config.events_topic.rstrip('/')}/#"

    @property
    def is_running(self) -> bool:
        return self._client is not None

    @property
    def subscription(self) -> str:
        """Topic filter subscribed on every (re)connect."""
        return self._subscription

    def start(self) -> None:
        """Connect and start the network loop.

        Raises ``OSError`` when the broker is unreachable.
        """
        self.stop()
        config = self._config
        self._log.debug(
            "Connecting to event relay %s:%s (tls=%s) for %s",
            config.events_host,
            config.events_port,
            config.events_tls,
            self._subscription,
        )
        client = self._build_client()
        client.connect(config.events_host, config.events_port, keepalive=config.events_keepalive)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            self._log.debug("Event relay stopped")

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._log)
        if self._config.events_tls:
            client.tls_set()
        client.on_connect = self._handle_connect
        client.on_message = self._handle_message
        client.on_disconnect = self._handle_disconnect
        return client

    # paho callbacks, invoked on the network thread.

    def _handle_connect(self, client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any) -> None:
        if reason_code.is_failure:
            self._log.warning("Event relay refused connection: %s", reason_code)
            return
        client.subscribe(self._subscription, qos=1)

    def _handle_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            event = decode_event_payload(msg.payload)
        except RaceLedgerError:
            self._log.warning("Skipping undecodable relay message on %s", msg.topic, exc_info=True)
            return
        self._log.debug("Relay event %s race=%s block=%s", event.kind, event.race_id, event.block_number)
        self._loop.call_soon_threadsafe(self._on_event, event)

    def _handle_disconnect(
        self, _client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any
    ) -> None:
        if self._client is not None:
            self._log.warning("Event relay disconnected (%s); paho will reconnect", reason_code)
