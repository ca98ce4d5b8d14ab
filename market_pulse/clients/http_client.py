from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "market-pulse/1.0"


class HttpClient:
    def __init__(self, timeout: int = 15, headers: Optional[Dict[str, str]] = None):
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json", "User-Agent": DEFAULT_USER_AGENT})
        if headers:
            self._session.headers.update(headers)
        self._timeout = timeout

    @retry(wait=wait_exponential(multiplier=1, min=1, max=8), stop=stop_after_attempt(3), reraise=True)
    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        response = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            body = response.text[:600] if response is not None else ""
            logger.warning("GET failed: url=%s status=%s", url, response.status_code)
            raise requests.HTTPError(f"{exc} | response_body={body}", response=response) from exc
        return response.json()
