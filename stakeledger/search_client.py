"""
search_client.py - HTTP transport for the transaction search index

Thin wrapper over the index's REST API:
- search(): one request, one decoded body
- scroll_all(): opens a scroll context, feeds every page to a handler in
  delivery order, and clears the context when drained

Every transport problem surfaces as FetchError. Nothing is retried here.
"""

from __future__ import annotations
import logging
import random
from typing import Any, Dict, Optional

import requests

from .core import FetchError, PageHandler

logger = logging.getLogger(__name__)

SCROLL_PAGE_SIZE = 9000


def _keep_alive(base_ms: int, jitter_ms: int) -> str:
    # Identical keep-alive strings must not repeat between scroll requests.
    return f"{base_ms + random.randint(0, jitter_ms)}ms"


class ElasticSearchClient:
    """
    Search index client implementing the SearchIndex protocol.

    Example:
        client = ElasticSearchClient("http://localhost:9200")
        client.scroll_all(query, "transactions", handle_page)
    """

    def __init__(
        self,
        address: str,
        username: str = "",
        password: str = "",
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
        page_size: int = SCROLL_PAGE_SIZE,
    ):
        self.address = address.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password)

    def search(self, query: Dict[str, Any], index: str) -> Dict[str, Any]:
        """Run a single search request against index."""
        return self._request("POST", f"{index}/_search", body=query)

    def scroll_all(self, query: Dict[str, Any], index: str, handler: PageHandler) -> None:
        """
        Drain every page of query, calling handler once per page.

        Errors raised by handler propagate unchanged after the scroll
        context is cleared.
        """
        first_page = self._request(
            "POST",
            f"{index}/_search",
            body=query,
            params={"scroll": _keep_alive(600_000, 50_000), "size": self.page_size},
        )
        scroll_id = first_page.get("_scroll_id")
        try:
            handler(first_page)
            page = first_page
            while scroll_id and page.get("hits", {}).get("hits"):
                page = self._request(
                    "POST",
                    "_search/scroll",
                    body={"scroll": _keep_alive(120_000, 10_000), "scroll_id": scroll_id},
                )
                scroll_id = page.get("_scroll_id") or scroll_id
                if page.get("hits", {}).get("hits"):
                    handler(page)
        finally:
            if scroll_id:
                self._clear_scroll(scroll_id)

    def _clear_scroll(self, scroll_id: str) -> None:
        url = f"{self.address}/_search/scroll"
        try:
            response = self.session.request(
                "DELETE", url, json={"scroll_id": scroll_id}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("cannot clear scroll: %s", exc)
            return
        if not response.ok and response.status_code != 404:
            logger.warning("cannot clear scroll: status %s", response.status_code)

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.address}/{path}"
        logger.debug("%s %s params=%s body=%s", method, url, params, body)
        try:
            response = self.session.request(
                method, url, json=body, params=params, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise FetchError(f"{method} {url} failed: {exc}") from exc

        if not response.ok:
            raise FetchError(f"{method} {url} returned {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"{method} {url} returned a non-JSON body") from exc
