"""JSON-RPC over HTTP transport for the ledger gateway."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp

from raceledger._constants import USER_AGENT
from raceledger._redact import redact_for_log
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`JsonRpcTransport`) concrete.
    """

    async def post_rpc(self, method: str, params: Sequence[Any]) -> dict[str, Any]:
        ...


class JsonRpcTransport:
    """Posts JSON-RPC 2.0 requests and returns the decoded response envelope."""

    def __init__(
        self,
        config: RaceLedgerConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._ids = itertools.count(1)
        self._timeout = (
            aiohttp.ClientTimeout(total=config.request_timeout) if config.request_timeout is not None else None
        )

    async def post_rpc(self, method: str, params: Sequence[Any]) -> dict[str, Any]:
        """Send one JSON-RPC call.

        Returns the whole response object (``result`` or ``error``); mapping
        error objects to exceptions is left to :mod:`raceledger._api._common`.
        """
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        headers = {
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }

        if self._config.api_trace_enabled:
            _logger.debug("RPC request %s", redact_for_log(request))
        else:
            _logger.debug("RPC %s", method)

        kwargs: dict[str, Any] = {"data": json.dumps(request, separators=(",", ":")), "headers": headers}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        try:
            async with self._http.post(self._config.rpc_url, **kwargs) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise LedgerTransportError(
                        f"HTTP {resp.status} from {method}: {text[:200]}",
                        status_code=resp.status,
                        method=method,
                    )
        except LedgerTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LedgerTransportError(
                f"Request {method} failed: {exc}",
                method=method,
            ) from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LedgerTransportError(
                f"Invalid JSON from {method}: {text[:200]}",
                method=method,
            ) from exc

        if not isinstance(body, dict) or ("result" not in body and "error" not in body):
            raise LedgerTransportError(
                f"Malformed JSON-RPC response from {method}",
                method=method,
            )

        if self._config.api_trace_enabled:
            _logger.debug("RPC response %s", redact_for_log(body))
        return body
