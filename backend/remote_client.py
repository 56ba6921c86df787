"""
Thin JSON-over-HTTP helper shared by the remote analysis and embedding clients.

The helper only performs the call; each client decides its own failure policy.
"""

import secrets
import time
from typing import Any, Dict, Optional

import httpx

from config import RemoteServiceConfig

ENVELOPE_VERSION = "mcp.v1"


def new_request_id(prefix: str) -> str:
    """Correlation token attached to every remote request."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def join_api_url(base: str, endpoint: str) -> str:
    return f"{base.rstrip('/')}/{endpoint.lstrip('/')}"


def build_envelope(
    config: RemoteServiceConfig, action: str, request_id: str, payload: Dict[str, Any]
) -> Dict[str, Any]:
    return {
        "version": ENVELOPE_VERSION,
        "service": config.service_name,
        "action": action,
        "requestId": request_id,
        "payload": payload,
    }


async def post_json(
    config: RemoteServiceConfig,
    endpoint: str,
    body: Dict[str, Any],
    headers: Dict[str, str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """
    POST `body` to `<config.endpoint>/<endpoint>` and return the decoded JSON.

    Raises:
        httpx.HTTPError: transport failure, timeout or non-2xx status
        ValueError: response body is not JSON
    """
    url = join_api_url(config.endpoint, endpoint)
    request_headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    request_headers.update(headers)

    timeout = httpx.Timeout(config.timeout_sec)
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.post(url, json=body, headers=request_headers)
        response.raise_for_status()
        return response.json()
