"""Thin wrapper around ``httpx.AsyncClient`` used for every outbound call."""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from pinjected_google_auth import __version__
from pinjected_google_auth.exceptions import RequestError

USER_AGENT = f"pinjected-google-auth/{__version__}"


def configure_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Return a copy of headers whose User-Agent carries this library once."""
    configured = dict(headers or {})
    user_agent = configured.get("User-Agent")
    if not user_agent:
        configured["User-Agent"] = USER_AGENT
    elif "pinjected-google-auth/" not in user_agent:
        configured["User-Agent"] = f"{user_agent} {USER_AGENT}"
    return configured


def request_error_from_response(response: httpx.Response) -> RequestError:
    try:
        body: Any = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        errors = error.get("errors") or []
        messages = [e.get("message", "") for e in errors if isinstance(e, dict)]
        message = "\n".join(messages) if messages else error.get("message", "")
        return RequestError(
            message or response.reason_phrase,
            status=response.status_code,
            code=error.get("code", response.status_code),
            errors=errors,
        )
    if isinstance(body, dict) and "error" in body:
        # OAuth2 token endpoint style: {"error": "...", "error_description": "..."}
        message = body.get("error_description") or str(body["error"])
        return RequestError(message, status=response.status_code, errors=[body])

    return RequestError(
        response.text or response.reason_phrase, status=response.status_code
    )


async def a_send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    **kwargs,
) -> httpx.Response:
    """
    Send a request and raise RequestError for any non-2xx response.

    Connection-level failures (httpx.TransportError) propagate unchanged so
    callers can tell an unreachable host from an error response.
    """
    response = await client.request(
        method, url, headers=configure_headers(headers), **kwargs
    )
    if response.is_error:
        error = request_error_from_response(response)
        logger.debug(f"{method} {url} failed: {error!r}")
        raise error
    return response
