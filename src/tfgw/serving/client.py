"""HTTP client for the downstream prediction services."""

from __future__ import annotations

from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter

from tfgw.utils.logging import get_logger

LOG = get_logger(__name__)


class PredictionServiceClient:
    """Thin wrapper over a pooled :class:`requests.Session`.

    One instance is shared by every in-flight relay and health probe. Errors
    are not caught here; callers classify them.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        probe_timeout: float = 3.0,
        pool_maxsize: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_maxsize, pool_maxsize=pool_maxsize, max_retries=0)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def predict(self, url: str, payload: Any) -> requests.Response:
        LOG.debug("POST prediction", extra={"url": url})
        return self.session.post(url, json=payload, timeout=self.timeout)

    def probe(self, url: str) -> int:
        # Only the status matters; the body is never read.
        with self.session.get(url, timeout=self.probe_timeout, stream=True) as response:
            return response.status_code

    def close(self) -> None:
        self.session.close()
