"""
rest_client.py - Network REST gateway client

Provides RestClient (the RestGateway implementation) plus the two gateway
calls the statistics need:
- query_vm_values(): read-only smart contract query (POST /vm-values/query)
- fetch_genesis_time(): network start time (GET /network/config)
"""

from __future__ import annotations
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

import requests

from .core import DecodeError, FetchError, RestGateway

logger = logging.getLogger(__name__)

USER_AGENT = "stakeledger-stats"


class RestClient:
    """REST gateway client implementing the RestGateway protocol."""

    def __init__(self, url: str, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, path: str) -> Dict[str, Any]:
        return self._request("GET", path)

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", path, body)

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self.url + path
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        try:
            response = self.session.request(method, url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(f"{method} {url} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"{method} {url} returned a non-JSON body (status {response.status_code})") from exc

        if response.status_code != 200:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise FetchError(error or f"{method} {url} returned {response.status_code}")
        return payload


def query_vm_values(gateway: RestGateway, sc_address: str, func_name: str, caller: str) -> List[bytes]:
    """
    Run a read-only contract query and return its raw return values.

    Raises:
        FetchError: On transport failure or a non-empty `error` field
        DecodeError: If a return value is not base64
    """
    response = gateway.post("/vm-values/query", {
        "scAddress": sc_address,
        "funcName": func_name,
        "caller": caller,
    })
    if response.get("error"):
        raise FetchError(f"{func_name} on {sc_address}: {response['error']}")

    output = (response.get("data") or {}).get("data") or {}
    values = []
    for item in output.get("returnData") or []:
        try:
            values.append(base64.b64decode(item, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Invalid return data '{item}' from {func_name}") from exc
    return values


def fetch_genesis_time(gateway: RestGateway) -> int:
    """
    Return the network start time in unix seconds.

    Raises:
        FetchError: If the gateway fails or reports no start time
    """
    response = gateway.get("/network/config")
    if response.get("error"):
        raise FetchError(response["error"])
    config = (response.get("data") or {}).get("config") or {}
    start_time = config.get("erd_start_time")
    if not start_time:
        raise FetchError("cannot fetch genesis timestamp")
    logger.info("genesis time %s", start_time)
    return int(start_time)
