"""
Backend API Client
==================
Thin async wrapper over httpx.AsyncClient for the support backend.

Features:
  • Bearer token auth, JSON in / JSON out
  • `{success, message, data, errors}` envelope normalised into ApiResponse
    (when the body carries no `success` it is derived from the HTTP status)
  • Retry with exponential backoff on connection errors and 5xx
    (never on 4xx; POST only retried when the request never reached the server)
  • 60s timeout, 120s for multipart uploads
  • Identical in-flight GETs share one request; a repeat inside the dedupe
    window reuses the previous response
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from campus_support.config import settings
from campus_support.exceptions import ApiError
from campus_support.schemas import ApiResponse

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error: unable to reach the support server. Please try again."

# connection never established; safe to resend any method
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

_IDEMPOTENT = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})


# ─── Helpers ──────────────────────────────────────────────────────────────────

def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None/'' values and the 'all' sentinel used by filter selectors."""
    if not params:
        return {}
    cleaned: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "" or value == "all":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        cleaned[key] = value
    return cleaned


def request_key(method: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Stable key for de-duplication: method, path and sorted params."""
    query = "&".join(f"{k}={v}" for k, v in sorted(clean_params(params).items()))
    return f"{method.upper()} {path}?{query}"


def normalise_envelope(response: httpx.Response) -> ApiResponse:
    try:
        body = response.json()
    except ValueError:
        body = None

    ok = response.is_success
    if isinstance(body, dict):
        enveloped = "success" in body or "data" in body
        success   = bool(body.get("success", ok)) and ok
        message   = body.get("message") or ("" if ok else _status_message(response))
        data      = body.get("data") if enveloped else body
        errors    = body.get("errors") if isinstance(body.get("errors"), dict) else None
    else:
        success = ok
        message = "" if ok else _status_message(response)
        data    = body
        errors  = None

    return ApiResponse(
        success=success,
        status_code=response.status_code,
        message=message,
        data=data,
        errors=errors,
    )


def _status_message(response: httpx.Response) -> str:
    return f"HTTP {response.status_code}: {response.reason_phrase}"


# ─── ApiClient ────────────────────────────────────────────────────────────────

class ApiClient:
    def __init__(
        self,
        base_url:       Optional[str] = None,
        token:          Optional[str] = None,
        timeout:        Optional[float] = None,
        upload_timeout: Optional[float] = None,
        max_retries:    Optional[int] = None,
        base_delay:     Optional[float] = None,
        dedupe_window:  Optional[float] = None,
        transport:      Optional[httpx.AsyncBaseTransport] = None,
        clock:          Callable[[], float] = time.monotonic,
    ):
        self.base_url       = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout        = settings.REQUEST_TIMEOUT_SECS if timeout is None else timeout
        self.upload_timeout = settings.UPLOAD_TIMEOUT_SECS if upload_timeout is None else upload_timeout
        self.max_retries    = max(1, settings.MAX_RETRIES if max_retries is None else max_retries)
        self.base_delay     = settings.RETRY_BASE_DELAY_SECS if base_delay is None else base_delay
        self.dedupe_window  = settings.DEDUPE_WINDOW_SECS if dedupe_window is None else dedupe_window
        self._clock         = clock

        self._client = httpx.AsyncClient(
            base_url=self.base_url + "/",
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._inflight: Dict[str, asyncio.Future] = {}
        self._recent:   Dict[str, Tuple[float, ApiResponse]] = {}

        self.set_token(token if token is not None else settings.API_TOKEN)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: Optional[str]) -> None:
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)
        self._recent.clear()

    # ── Verbs ─────────────────────────────────────────────────────────────────

    async def get(
        self,
        path:   str,
        params: Optional[Dict[str, Any]] = None,
        fresh:  bool = False,
    ) -> ApiResponse:
        key = request_key("GET", path, params)

        cached = self._recent.get(key)
        if not fresh and cached and self._clock() - cached[0] < self.dedupe_window:
            logger.debug("Reusing recent response for %s", key)
            return cached[1]

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self.request("GET", path, params=params))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            logger.debug("Joining in-flight request %s", key)

        response = await asyncio.shield(task)
        self._recent[key] = (self._clock(), response)
        return response

    async def post(self, path: str, json: Any = None) -> ApiResponse:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> ApiResponse:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> ApiResponse:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> ApiResponse:
        return await self.request("DELETE", path)

    async def upload(
        self,
        path:  str,
        files: Dict[str, Tuple[str, bytes, str]],
        data:  Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Multipart POST; `files` maps field name → (filename, content, content_type)."""
        return await self.request(
            "POST", path, files=files, data=data, timeout=self.upload_timeout,
        )

    async def download(self, path: str) -> bytes:
        try:
            response = await self._client.get(path.lstrip("/"), timeout=self.upload_timeout)
        except httpx.RequestError as exc:
            logger.warning("Download connection error for %s: %s", path, exc)
            raise ApiError(NETWORK_ERROR_MESSAGE) from exc
        if not response.is_success:
            envelope = normalise_envelope(response)
            raise ApiError(envelope.message, response.status_code, envelope.errors)
        return response.content

    # ── Core request loop ─────────────────────────────────────────────────────

    async def request(
        self,
        method:  str,
        path:    str,
        params:  Optional[Dict[str, Any]] = None,
        json:    Any = None,
        files:   Optional[Dict[str, Any]] = None,
        data:    Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        method = method.upper()
        if method != "GET":
            # writes make every cached read suspect
            self._recent.clear()

        last_exc: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    path.lstrip("/"),
                    params=clean_params(params) or None,
                    json=json,
                    files=files,
                    data=data,
                    timeout=self.timeout if timeout is None else timeout,
                )
            except httpx.RequestError as exc:
                last_exc = exc
                logger.warning(
                    "%s %s connection error: %s (attempt %d/%d)",
                    method, path, str(exc), attempt, self.max_retries,
                )
                if method not in _IDEMPOTENT and not isinstance(exc, _UNSENT_ERRORS):
                    break
            else:
                envelope = normalise_envelope(response)
                if response.status_code < 500:
                    if not envelope.success:
                        logger.info(
                            "%s %s rejected: %d %s", method, path,
                            response.status_code, envelope.message,
                        )
                        raise ApiError(envelope.message, response.status_code, envelope.errors)
                    return envelope

                last_exc = ApiError(envelope.message, response.status_code, envelope.errors)
                logger.warning(
                    "%s %s server error: %d %s (attempt %d/%d)",
                    method, path, response.status_code, response.reason_phrase,
                    attempt, self.max_retries,
                )
                if method not in _IDEMPOTENT:
                    break

            # Exponential backoff before next retry
            if attempt < self.max_retries:
                delay = self.base_delay * (2 ** (attempt - 1))
                await asyncio.sleep(delay)

        logger.error("%s %s FAILED: %s", method, path, str(last_exc))
        if isinstance(last_exc, ApiError):
            raise last_exc
        raise ApiError(NETWORK_ERROR_MESSAGE) from last_exc
