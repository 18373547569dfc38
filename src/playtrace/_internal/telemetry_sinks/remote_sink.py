from __future__ import annotations

import logging
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)


class HttpForwardTelemetrySink:
    """POSTs one serialized event per request to the collector."""

    name: str = "remote"

    def __init__(self, *, timeout_s: float = 5.0, session: Optional[Any] = None) -> None:
        self.timeout_s = float(timeout_s)
        self._session = session if session is not None else requests.Session()

    def write(self, endpoint: str, body: bytes) -> None:
        if not endpoint or not body:
            return
        try:
            resp = self._session.post(
                endpoint,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s,
            )
            # The response is never inspected; release the connection.
            resp.close()
        except Exception as e:
            # Best-effort; never crash the game due to remote telemetry failures.
            logger.warning("[telemetry/remote] forward failed: %s endpoint=%s", e, endpoint)

    def close(self) -> None:
        try:
            self._session.close()
        except Exception:
            logger.error("[telemetry/remote] session close failed", exc_info=True)
