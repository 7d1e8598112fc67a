"""
Session Monitor Module

Ties one BehaviorSampler to one TelemetryTransport for the lifetime of a
monitored session. Every sample published while monitoring is active is
reported upstream; every risk update received overwrites the displayed
score. Closing the channel ends monitoring.
"""

import logging

from client.behavior_sampler import BehaviorSample, BehaviorSampler
from client.telemetry_transport import TelemetryTransport
from shared.models import RiskUpdate

logger = logging.getLogger(__name__)


class SessionMonitor:
    """Client-side coordinator for a single session token."""

    ELEVATED_RISK_THRESHOLD = 50

    def __init__(
        self,
        sampler: BehaviorSampler,
        transport: TelemetryTransport,
        session_token: str,
    ):
        self.sampler = sampler
        self.transport = transport
        self.session_token = session_token

        self.risk_score: int = 0
        self.risk_reason: str = "System Initialized"
        self.reports_sent = 0
        self.updates_received = 0

        self.transport.on_risk_update = self._on_risk_update
        self.transport.on_close = self._on_channel_closed

    @property
    def is_elevated(self) -> bool:
        return self.risk_score > self.ELEVATED_RISK_THRESHOLD

    def start(self) -> bool:
        """
        Open the channel, announce the session and begin sampling.
        Returns whether the channel is up. Sampling starts regardless.
        """
        connected = self.transport.connect()
        if connected:
            self.transport.send_session_init(self.session_token)
        else:
            logger.warning(
                f"SessionMonitor: channel unavailable, session {self.session_token[:8]} "
                "will not be scored"
            )
        self.sampler.subscribe(self._on_sample)
        self.sampler.set_active(True)
        return connected

    def stop(self) -> None:
        self.sampler.set_active(False)
        self.sampler.unsubscribe(self._on_sample)
        self.transport.close()
        logger.info(
            f"SessionMonitor: stopped session {self.session_token[:8]} "
            f"({self.reports_sent} reports, {self.updates_received} updates)"
        )

    def _on_sample(self, sample: BehaviorSample) -> None:
        if not self.sampler.active:
            return
        if self.transport.send_report(sample, self.session_token):
            self.reports_sent += 1

    def _on_risk_update(self, update: RiskUpdate) -> None:
        self.updates_received += 1
        self.risk_score = update.risk_score
        self.risk_reason = update.reason
        if self.is_elevated:
            logger.warning(f"🔴 Risk {update.risk_score}: {update.reason}")
        else:
            logger.debug(f"🟢 Risk {update.risk_score}: {update.reason}")

    def _on_channel_closed(self) -> None:
        if self.sampler.active:
            logger.info("SessionMonitor: channel closed, monitoring stopped")
        self.sampler.set_active(False)
