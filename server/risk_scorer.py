# server/risk_scorer.py
"""
Risk Scorer Module

Maps one behavior report to one risk update with a fixed additive rule:

    +30 if typing_speed > 500 ms  (mean gap between keystrokes)
    +40 if mouse_jitter > 0.8

The score is not clamped or normalized. Each report is scored on its own;
there is no smoothing or history, so any apparent trend comes only from the
client overwriting its displayed value.

Note: typing_speed is a mean gap, so larger values mean SLOWER typing. The
> 500 comparison is kept as-is even though it flags slow cadence.
"""

import logging
from typing import Any

from shared.models import BehaviorReport, RiskUpdate

logger = logging.getLogger(__name__)


class RiskScorer:
    """Stateless, deterministic scorer for behavior reports."""

    TYPING_SPEED_THRESHOLD = 500.0
    TYPING_SPEED_WEIGHT = 30
    MOUSE_JITTER_THRESHOLD = 0.8
    MOUSE_JITTER_WEIGHT = 40
    ANOMALY_THRESHOLD = 50

    ANOMALOUS_REASON = "Anomalous interaction detected"
    NORMAL_REASON = "Normal"

    def score(self, report: BehaviorReport) -> RiskUpdate:
        """
        Compute the risk update for a single report.

        Args:
            report: Decoded BehaviorReport (missing metrics already read as 0).

        Returns:
            RiskUpdate with an integer score and a reason string.
        """
        risk_score = 0
        if report.typing_speed > self.TYPING_SPEED_THRESHOLD:
            risk_score += self.TYPING_SPEED_WEIGHT
        if report.mouse_jitter > self.MOUSE_JITTER_THRESHOLD:
            risk_score += self.MOUSE_JITTER_WEIGHT

        anomalous = risk_score > self.ANOMALY_THRESHOLD
        reason = self.ANOMALOUS_REASON if anomalous else self.NORMAL_REASON

        if anomalous:
            logger.warning(
                f"🔴 Session {report.session_token[:8] or '?'} risk {risk_score} "
                f"(typing={report.typing_speed:.1f}ms, jitter={report.mouse_jitter:.3f})"
            )
        else:
            logger.debug(f"🟢 Session {report.session_token[:8] or '?'} risk {risk_score}")

        return RiskUpdate(risk_score=risk_score, reason=reason)

    def score_payload(self, payload: Any) -> RiskUpdate:
        """Score a raw decoded payload. Never raises on malformed input."""
        return self.score(BehaviorReport.from_payload(payload))
