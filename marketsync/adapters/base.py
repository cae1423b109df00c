"""
REST client base.

The storefront backend is called through an already-authenticated
requests.Session. Calls run in a worker thread so the event loop keeps
serving push events and timers while a request is in flight.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from marketsync.core.exceptions import ApiError
from marketsync.infra.logging_config import get_logger

logger = get_logger("api")

TIMEOUT_SECONDS = 15

ModelT = TypeVar("ModelT", bound=BaseModel)


def build_session(access_token: Optional[str] = None) -> requests.Session:
    """Build a session carrying the bearer token, if one is configured."""
    session = requests.Session()
    session.headers["Accept"] = "application/json"
    if access_token:
        session.headers["Authorization"] = f"Bearer {access_token}"
    return session


class BaseApiClient:
    """Shared request/response handling for the storefront REST API."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or build_session()
        self._timeout = timeout

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None,
        files: Optional[list[tuple[str, Any]]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        url = f"{self._base_url}{path}"
        try:
            resp = await asyncio.to_thread(
                self._session.request,
                method,
                url,
                params=params,
                json=json,
                files=files,
                timeout=self._timeout,
            )
        except requests.Timeout as e:
            raise ApiError(None, f"Timed out after {self._timeout}s: {method} {path}") from e
        except requests.RequestException as e:
            raise ApiError(None, f"{method} {path} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise ApiError(
                resp.status_code, resp.text[:500] if resp.text else "no body"
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, f"Invalid JSON: {e}") from e

    @staticmethod
    def _validate(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ApiError(None, f"Invalid {model.__name__} response: {e}") from e
