"""
Telemetry Transport Module

Client end of the persistent, message-oriented duplex channel to the risk
server. Behavior reports go upstream as JSON frames; risk updates come back
downstream and are read by a background receiver thread.

Channel policy:
- connect once per client lifetime; a failed connect or send is logged and
  the channel is considered closed. There is no automatic retry.
- no rate limiting or coalescing: each report is sent as soon as asked.
- the last received risk update wins; there are no sequence numbers.
"""

import json
import logging
import threading
from typing import Any, Callable, Optional

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect as ws_connect

from client.behavior_sampler import BehaviorSample
from shared.models import (
    BehaviorReport,
    MessageType,
    RiskUpdate,
    SessionInit,
    make_envelope,
    parse_message_type,
)

logger = logging.getLogger(__name__)


class TelemetryTransport:
    """
    WebSocket connection carrying BEHAVIOR_REPORT / SESSION_INIT frames
    upstream and RISK_UPDATE frames downstream.
    """

    def __init__(
        self,
        url: str,
        connect: Callable[..., Any] = ws_connect,
        on_risk_update: Optional[Callable[[RiskUpdate], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        open_timeout: float = 5.0,
    ):
        """
        Args:
            url: WebSocket URL of the server, e.g. ``ws://127.0.0.1:8000/ws``.
            connect: Factory returning a connection with ``send``, ``recv``
                     and ``close``. Defaults to the websockets sync client.
            on_risk_update: Called with every RiskUpdate received.
            on_close: Called once when the channel closes for any reason.
        """
        self.url = url
        self._connect = connect
        self._open_timeout = open_timeout
        self.on_risk_update = on_risk_update
        self.on_close = on_close

        self._conn = None
        self._receiver: Optional[threading.Thread] = None
        self._send_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._closed = threading.Event()
        self._close_notified = False
        self.latest_update: Optional[RiskUpdate] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._closed.is_set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """Open the channel once. Returns False (logged) on failure."""
        if self._conn is not None or self._closed.is_set():
            return self.connected
        try:
            self._conn = self._connect(self.url, open_timeout=self._open_timeout)
        except Exception as e:
            logger.warning(f"TelemetryTransport: cannot connect to {self.url}: {e}")
            self._closed.set()
            return False

        logger.info(f"TelemetryTransport: connected to {self.url}")
        self._receiver = threading.Thread(
            target=self._receive_loop, name="telemetry-receiver", daemon=True
        )
        self._receiver.start()
        return True

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        conn = self._conn
        self._closed.set()
        if conn is not None:
            try:
                conn.close()
            except Exception as e:
                logger.debug(f"TelemetryTransport: error while closing: {e}")
        if self._receiver and self._receiver is not threading.current_thread():
            self._receiver.join(timeout=2.0)
        self._notify_closed()

    def _notify_closed(self) -> None:
        with self._state_lock:
            if self._close_notified:
                return
            self._close_notified = True
        logger.info("TelemetryTransport: channel closed")
        if self.on_close is not None:
            try:
                self.on_close()
            except Exception:
                logger.exception("TelemetryTransport: on_close callback failed")

    # ------------------------------------------------------------------
    # Upstream
    # ------------------------------------------------------------------

    def send_report(self, sample: BehaviorSample, session_token: str) -> bool:
        report = BehaviorReport(
            typing_speed=sample.typing_speed,
            mouse_jitter=sample.mouse_jitter,
            session_token=session_token,
        )
        return self._send(make_envelope(MessageType.BEHAVIOR_REPORT, report))

    def send_session_init(self, token: str) -> bool:
        return self._send(make_envelope(MessageType.SESSION_INIT, SessionInit(token=token)))

    def _send(self, frame: dict) -> bool:
        if not self.connected:
            logger.debug(f"TelemetryTransport: not connected, dropping {frame['type']}")
            return False
        try:
            with self._send_lock:
                self._conn.send(json.dumps(frame))
            return True
        except Exception as e:
            logger.warning(f"TelemetryTransport: send failed ({frame['type']}): {e}")
            self.close()
            return False

    # ------------------------------------------------------------------
    # Downstream
    # ------------------------------------------------------------------

    def _receive_loop(self) -> None:
        try:
            while not self._closed.is_set():
                raw = self._conn.recv()
                self._handle_frame(raw)
        except ConnectionClosed:
            logger.info("TelemetryTransport: server closed the connection")
        except Exception as e:
            if not self._closed.is_set():
                logger.warning(f"TelemetryTransport: receive failed: {e}")
        finally:
            self._closed.set()
            self._notify_closed()

    def _handle_frame(self, raw: Any) -> None:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("TelemetryTransport: ignoring unparseable frame")
            return
        if not isinstance(frame, dict):
            return

        if parse_message_type(frame.get("type")) is not MessageType.RISK_UPDATE:
            logger.debug(f"TelemetryTransport: ignoring frame type {frame.get('type')!r}")
            return

        try:
            update = RiskUpdate.model_validate(frame.get("payload") or {})
        except ValueError as e:
            logger.warning(f"TelemetryTransport: malformed RISK_UPDATE: {e}")
            return

        self.latest_update = update
        if self.on_risk_update is not None:
            try:
                self.on_risk_update(update)
            except Exception:
                logger.exception("TelemetryTransport: on_risk_update callback failed")
