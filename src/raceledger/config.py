"""Service configuration for raceledger."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from raceledger._constants import ODDS_HISTORY_CAPACITY, RPC_URL
from raceledger.exceptions import RaceLedgerConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class RaceLedgerConfig:
    """Service configuration.

    Parameters
    ----------
    engine_address : str
        Address of the racing engine contract on the ledger. Sent as the
        first parameter of every ``racing_*`` RPC call.
    rpc_url : str
        JSON-RPC endpoint of the ledger gateway.
    from_block : int
        First block of the catch-up scan.
    signer : str or None
        Account the gateway signs telemetry submissions with. When unset,
        telemetry submission is disabled and reported as a failure.
    events_enabled : bool
        Subscribe to the MQTT event relay after catch-up.
    events_host : str
        Event relay broker host.
    events_port : int
        Event relay broker port.
    events_topic : str
        Topic prefix the relay publishes ledger events under.
    events_keepalive : int
        MQTT keepalive in seconds.
    events_tls : bool
        Use TLS for the relay connection.
    request_timeout : float or None
        Total timeout per RPC call in seconds. ``None`` keeps the aiohttp
        default.
    odds_history_capacity : int
        Maximum odds-history entries retained per race.
    api_trace_enabled : bool
        Log redacted RPC requests and responses at DEBUG level.
    """

    engine_address: str
    rpc_url: str = RPC_URL
    from_block: int = 0
    signer: str | None = None
    events_enabled: bool = True
    events_host: str = "127.0.0.1"
    events_port: int = 1883
    events_topic: str = "racing/events"
    events_keepalive: int = 60
    events_tls: bool = False
    request_timeout: float | None = None
    odds_history_capacity: int = ODDS_HISTORY_CAPACITY
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.engine_address or not self.engine_address.strip():
            raise RaceLedgerConfigError("engine_address must be set to the deployed racing engine address")
        if self.from_block < 0:
            raise RaceLedgerConfigError(f"from_block must be >= 0, got {self.from_block}")
        if self.odds_history_capacity <= 0:
            raise RaceLedgerConfigError("odds_history_capacity must be positive")

    @property
    def submissions_enabled(self) -> bool:
        return bool(self.signer)

    @classmethod
    def from_env(cls, **overrides: Any) -> RaceLedgerConfig:
        """Create configuration from environment variables.

        Reads ``RACING_ENGINE_ADDRESS`` and optional ``RACING_*`` variables.
        Explicit keyword arguments override environment values.

        Raises
        ------
        RaceLedgerConfigError
            If no engine address is available.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "RACING_ENGINE_ADDRESS": "engine_address",
            "RACING_RPC_URL": "rpc_url",
            "RACING_SIGNER": "signer",
            "RACING_EVENTS_HOST": "events_host",
            "RACING_EVENTS_TOPIC": "events_topic",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "RACING_FROM_BLOCK": "from_block",
            "RACING_EVENTS_PORT": "events_port",
            "RACING_EVENTS_KEEPALIVE": "events_keepalive",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise RaceLedgerConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        timeout_env = env.get("RACING_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            try:
                config_kwargs["request_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise RaceLedgerConfigError(f"RACING_REQUEST_TIMEOUT must be a number, got {timeout_env!r}") from exc

        if "events_enabled" not in overrides:
            config_kwargs["events_enabled"] = _env_bool(env.get("RACING_EVENTS_ENABLED"), True)
        if "events_tls" not in overrides:
            config_kwargs["events_tls"] = _env_bool(env.get("RACING_EVENTS_TLS"), False)
        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(env.get("RACING_API_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)

        if not config_kwargs.get("engine_address"):
            raise RaceLedgerConfigError(
                "Missing RACING_ENGINE_ADDRESS in environment. "
                "Set it to the deployed racing engine address."
            )

        return cls(**config_kwargs)
