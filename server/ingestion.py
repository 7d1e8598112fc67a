# server/ingestion.py
"""
Telemetry Ingestion Module

Decodes upstream frames from one connection and routes them by type:

- BEHAVIOR_REPORT → scored, answered with a RISK_UPDATE frame
- SESSION_INIT    → recorded in the session correlation store
- anything else   → ignored

Malformed input never raises: unparseable frames are dropped with a log
line, and missing report metrics are read as 0.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from server.risk_scorer import RiskScorer
from server.session_store import SessionCorrelationStore, SessionRecord
from shared.models import MessageType, SessionInit, make_envelope, parse_message_type

logger = logging.getLogger(__name__)


class TelemetryIngestor:
    """Per-frame handler shared by every connection."""

    def __init__(
        self,
        scorer: RiskScorer,
        store: SessionCorrelationStore,
        clock: Callable[[], float] = time.time,
    ):
        self.scorer = scorer
        self.store = store
        self._clock = clock

    def handle(
        self,
        raw: Any,
        source_address: str = "unknown",
        user_agent: str = "unknown",
    ) -> Optional[Dict[str, Any]]:
        """
        Process one upstream frame.

        Returns:
            The downstream frame to send back, or None if there is no reply.
        """
        try:
            frame = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        except (ValueError, RecursionError):
            logger.warning(f"Dropping unparseable frame from {source_address}")
            return None

        if not isinstance(frame, dict):
            logger.warning(f"Dropping non-object frame from {source_address}")
            return None

        message_type = parse_message_type(frame.get("type"))
        payload = frame.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        if message_type is MessageType.BEHAVIOR_REPORT:
            update = self.scorer.score_payload(payload)
            return make_envelope(MessageType.RISK_UPDATE, update)

        if message_type is MessageType.SESSION_INIT:
            init = SessionInit.model_validate(payload)
            self.store.create(
                init.token,
                SessionRecord(
                    start_time=self._clock(),
                    source_address=source_address,
                    user_agent=user_agent,
                ),
            )
            return None

        logger.debug(f"Ignoring frame with type {frame.get('type')!r}")
        return None
