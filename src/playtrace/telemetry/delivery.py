from __future__ import annotations

import json
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Protocol, Tuple

from playtrace.config import REQUEST_TIMEOUT_S, normalize_mode

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    name: str

    def write(self, endpoint: str, body: bytes) -> None: ...
    def close(self) -> None: ...


def serialize_event(ev: Dict[str, Any]) -> bytes:
    """Canonical JSON body for one event. Raises on unserializable values or NaN/inf."""
    return json.dumps(ev, ensure_ascii=False, allow_nan=False, separators=(",", ":")).encode("utf-8")


class TelemetryDispatcher:
    """Fire-and-forget delivery: serialize on the caller, POST on a sender thread.

    ``send`` only queues; nothing about the HTTP exchange is reported back.
    There is no retry and nothing survives the process.
    """

    def __init__(
        self,
        *,
        sink: Optional[TelemetrySink] = None,
        mode: str = "remote",
        timeout_s: float = REQUEST_TIMEOUT_S,
        join_timeout_s: float = 2.0,
        autostart: bool = True,
    ) -> None:
        self._mode = normalize_mode(mode)
        self._timeout_s = float(timeout_s)
        self._join_timeout_s = max(0.1, float(join_timeout_s))
        self._autostart = bool(autostart)

        if sink is None and self._mode != "off":
            from playtrace._internal.telemetry_sinks.remote_sink import HttpForwardTelemetrySink

            sink = HttpForwardTelemetrySink(timeout_s=self._timeout_s)
        self._sink = sink

        self._queue: Deque[Tuple[str, bytes]] = deque()
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Set once stop() has given up on the sender; the dispatcher is not reusable after that.
        self._closed = False

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def send(self, ev: Dict[str, Any], endpoint: str) -> bool:
        """Queue one event for delivery. Returns False if it was dropped."""
        if self._mode == "off" or self._sink is None:
            return False
        if self._closed:
            logger.debug("[telemetry] dispatcher stopped - dropping %s", ev.get("event_type"))
            return False
        if not endpoint:
            logger.warning("[telemetry] not configured - call configure() first")
            return False
        try:
            body = serialize_event(ev)
        except (TypeError, ValueError):
            logger.error("[telemetry] failed to serialize event: %s", ev.get("event_type"), exc_info=True)
            return False

        with self._lock:
            self._queue.append((endpoint, body))
        self._wake.set()
        if self._autostart:
            self.start()
        return True

    def start(self) -> None:
        if self._mode == "off":
            return
        if self._closed:
            logger.warning("[telemetry] start() ignored - dispatcher already stopped")
            return
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="telemetry-sender", daemon=True)
        self._thread.start()

    def stop(self, *, timeout_s: float | None = None) -> None:
        """Let the sender drain for a bounded time, then abandon whatever is left.

        A sender still stuck in a slow write after the join timeout finishes that
        request and exits; it never picks up another event.
        """
        if self._closed:
            return
        try:
            self._stop.set()
            self._wake.set()
            t = self._thread
            if t and t.is_alive():
                t.join(timeout=self._join_timeout_s if timeout_s is None else max(0.1, float(timeout_s)))
        finally:
            self._closed = True
            self._thread = None
            dropped = self._drain()
            if dropped:
                logger.info("[telemetry] abandoned %d undelivered event(s) on stop", len(dropped))
            if self._sink is not None:
                try:
                    self._sink.close()
                except Exception:
                    logger.error("[telemetry] sink close failed: %s", getattr(self._sink, "name", "unknown"), exc_info=True)

    def flush_now(self) -> int:
        """Deliver everything queued on the calling thread."""
        batch = self._drain()
        self._write(batch)
        return len(batch)

    def _drain(self) -> List[Tuple[str, bytes]]:
        batch: List[Tuple[str, bytes]] = []
        with self._lock:
            while self._queue:
                batch.append(self._queue.popleft())
        return batch

    def _run(self) -> None:
        while True:
            self._wake.wait()
            self._wake.clear()
            try:
                self._write(self._drain())
            except Exception:
                logger.error("[telemetry] sender loop crashed", exc_info=True)
            if self._stop.is_set():
                if self._closed or not self.pending():
                    return
                self._wake.set()

    def _write(self, batch: List[Tuple[str, bytes]]) -> None:
        if self._sink is None:
            return
        for endpoint, body in batch:
            if self._closed:
                break
            try:
                self._sink.write(endpoint, body)
            except Exception as e:
                logger.error("[telemetry] sink write failed: %s err=%s", getattr(self._sink, "name", "unknown"), e, exc_info=True)
