from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote
import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from .errors import APIError, NotFoundError

log = logging.getLogger(__name__)
PROXY_ROOT_URL = "http://taskcluster"


class TaskclusterClient:
    """Thin JSON client for the Taskcluster REST services (index, queue)."""

    def __init__(self, root_url: str = PROXY_ROOT_URL, token: str = "", timeout: int = 300,
                 session: Optional[requests.Session] = None) -> None:
        self.root_url = root_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def url(self, service: str, route: str) -> str:
        return f"{self.root_url}/api/{service}/v1/{quote(route.lstrip('/'), safe='/')}"

    @retry(
        reraise=True,
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )
    def request(self, method: str, service: str, route: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self.url(service, route)
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        log.debug("%s %s", method, url)
        resp = self._session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        if resp.status_code == 404:
            raise NotFoundError(404, method, url, resp.text)
        if resp.status_code >= 400:
            log.warning("HTTP error %s from %s %s", resp.status_code, method, url)
            raise APIError(resp.status_code, method, url, resp.text)
        return resp.json() if resp.content else {}
