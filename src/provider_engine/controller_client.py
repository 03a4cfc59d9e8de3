"""Controller transport implementing the Remote Operations Interface.

The controller exposes a single action-based endpoint: every call is a form
POST to ``/v1/api`` carrying ``action``, the session ``CID`` and the action's
parameters. Replies are JSON objects with ``return`` (bool), ``results`` and,
on failure, ``reason``.

Retry policy lives here and only here: transport errors (connection reset,
timeouts) are retried with exponential backoff, an expired session is
re-established once, and everything else is surfaced to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import DEFAULT_REQUEST_TIMEOUT_SECONDS, DEFAULT_TRANSPORT_RETRIES, Config
from .remote import NotFoundError, RemoteOperations
from .resources import get_endpoints

logger = logging.getLogger(__name__)

API_PATH = "/v1/api"
LOGIN_ACTION = "login"

# Reply reasons that mean the resource is gone
NOT_FOUND_MARKERS = ("does not exist", "not found")
# Reply reasons that mean the session must be re-established
EXPIRED_SESSION_MARKERS = ("cid is invalid", "cid has expired", "invalid cid")


class ControllerAPIError(Exception):
    """The controller rejected a call (``return: false`` or a bad reply)."""

    def __init__(self, action: str, reason: str, status_code: int | None = None) -> None:
        self.action = action
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Controller action '{action}' failed: {reason}")


def encode_form(params: Mapping[str, Any]) -> dict[str, str]:
    """Flatten parameters to the controller's form encoding.

    Booleans become "true"/"false", lists of scalars are comma-joined and
    mappings or lists of records are sent as JSON.
    """
    form: dict[str, str] = {}
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            form[name] = "true" if value else "false"
        elif isinstance(value, Mapping):
            form[name] = json.dumps(dict(value), sort_keys=True)
        elif isinstance(value, list | tuple | set | frozenset):
            items = list(value)
            if any(isinstance(item, Mapping) for item in items):
                form[name] = json.dumps(items, sort_keys=True)
            else:
                form[name] = ",".join(str(item) for item in items)
        else:
            form[name] = str(value)
    return form


class ControllerClient(RemoteOperations):
    """Async controller client.

    Use as an async context manager::

        async with ControllerClient.from_config(config) as client:
            snapshot = await client.read("gateway", "spoke-1")
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        verify: bool = True,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_TRANSPORT_RETRIES,
        retry_wait_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._verify = verify
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._retry_wait_seconds = retry_wait_seconds
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._cid: str | None = None

    @classmethod
    def from_config(cls, config: Config) -> ControllerClient:
        return cls(
            config.base_url,
            config.username,
            config.password,
            verify=config.verify_tls,
            timeout=config.request_timeout_seconds,
            max_attempts=config.max_transport_retries,
        )

    async def __aenter__(self) -> ControllerClient:
        self._ensure_http()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                verify=self._verify,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._cid = None

    # =========================================================================
    # Session and transport
    # =========================================================================

    async def _post(self, form: dict[str, str]) -> dict[str, Any]:
        """POST one form, retrying transport errors only."""
        http = self._ensure_http()
        action = form.get("action", "")

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await http.post(API_PATH, data=form)

        if response.status_code >= 400:
            raise ControllerAPIError(action, f"HTTP {response.status_code}", response.status_code)
        try:
            reply = response.json()
        except ValueError as e:
            raise ControllerAPIError(action, "reply is not JSON", response.status_code) from e
        if not isinstance(reply, dict):
            raise ControllerAPIError(action, "reply is not a JSON object", response.status_code)
        return reply

    async def login(self) -> str:
        """Open a session and return its CID."""
        reply = await self._post(
            {"action": LOGIN_ACTION, "username": self._username, "password": self._password}
        )
        if not reply.get("return") or not reply.get("CID"):
            raise ControllerAPIError(LOGIN_ACTION, str(reply.get("reason", "login rejected")))
        self._cid = str(reply["CID"])
        logger.info("Controller session established", extra={"controller": self._base_url})
        return self._cid

    async def call(self, action: str, params: Mapping[str, Any] | None = None) -> Any:
        """Invoke a controller action and return its ``results``.

        Raises:
            NotFoundError: If the controller reports the target missing.
            ControllerAPIError: For any other rejection.
            httpx.TransportError: When transport retries are exhausted.
        """
        form = encode_form({**(params or {}), "action": action})
        relogged = False

        while True:
            cid = self._cid or await self.login()
            reply = await self._post({**form, "CID": cid})
            if reply.get("return"):
                return reply.get("results")

            reason = str(reply.get("reason", ""))
            lowered = reason.lower()
            if not relogged and any(m in lowered for m in EXPIRED_SESSION_MARKERS):
                logger.info("Controller session expired, logging in again")
                self._cid = None
                relogged = True
                continue
            if any(m in lowered for m in NOT_FOUND_MARKERS):
                raise NotFoundError(action, reason)
            raise ControllerAPIError(action, reason)

    # =========================================================================
    # Remote Operations Interface
    # =========================================================================

    async def create(self, kind: str, payload: Mapping[str, Any]) -> str:
        endpoints = get_endpoints(kind)
        params = dict(payload)
        action = params.pop("action", endpoints.create)
        results = await self.call(action, params)

        if isinstance(results, Mapping) and results.get(endpoints.id_param):
            return str(results[endpoints.id_param])
        return str(params.get(endpoints.id_param, ""))

    async def read(self, kind: str, key: str) -> Mapping[str, Any]:
        endpoints = get_endpoints(kind)
        try:
            results = await self.call(endpoints.read, {endpoints.key_param: key})
        except NotFoundError as e:
            raise NotFoundError(kind, key) from e
        if not isinstance(results, Mapping):
            raise ControllerAPIError(endpoints.read, "snapshot is not a JSON object")
        return results

    async def find(self, kind: str, criteria: Mapping[str, str]) -> str | None:
        endpoints = get_endpoints(kind)
        if not endpoints.lookup:
            raise ValueError(f"Remote kind '{kind}' has no lookup action")
        results = await self.call(endpoints.lookup, criteria)
        if not isinstance(results, list):
            raise ControllerAPIError(endpoints.lookup, "listing is not a JSON array")

        matches = [
            str(item[endpoints.key_param])
            for item in results
            if isinstance(item, Mapping)
            and item.get(endpoints.key_param)
            and all(str(item.get(name, "")) == value for name, value in criteria.items())
        ]
        if len(matches) > 1:
            raise ControllerAPIError(
                endpoints.lookup, f"{len(matches)} resources match {dict(criteria)}"
            )
        return matches[0] if matches else None

    async def update(self, kind: str, key: str, delta: Mapping[str, Any]) -> None:
        endpoints = get_endpoints(kind)
        params = dict(delta)
        action = params.pop("action")
        await self.call(action, {endpoints.key_param: key, **params})

    async def delete(self, kind: str, key: str) -> None:
        endpoints = get_endpoints(kind)
        await self.call(endpoints.delete, {endpoints.key_param: key})
