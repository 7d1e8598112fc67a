# shared/models.py
"""
Shared Data Models (Pydantic)

Defines the messages exchanged between the telemetry client and the risk
server over the WebSocket channel. Every frame is a JSON envelope of the form
``{"type": <MessageType>, "payload": {...}}``.

Only derived numerical metrics and an opaque session token are transmitted.
NO key characters, NO raw pointer traces.

Behavior reports are decoded leniently: a missing or non-numeric metric is
read as 0 instead of failing validation, since the score is an advisory
signal and must never crash the scorer.
"""

import math
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageType(str, Enum):
    """Wire tags for every frame on the telemetry channel."""
    BEHAVIOR_REPORT = "BEHAVIOR_REPORT"
    SESSION_INIT = "SESSION_INIT"
    RISK_UPDATE = "RISK_UPDATE"


def _lenient_number(value: Any) -> float:
    """Coerce a wire value to a finite float, falling back to 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


# ----------------------------------------------------------------------
# Upstream (client → server)
# ----------------------------------------------------------------------

class BehaviorReport(BaseModel):
    """
    Latest behavioral metrics for one monitored session.
    Sent on every metric recomputation while monitoring is active.
    """
    model_config = ConfigDict(populate_by_name=True)

    typing_speed: float = Field(
        0.0, alias="typingSpeed",
        description="Mean inter-keystroke gap (ms) over the recent window",
    )
    mouse_jitter: float = Field(
        0.0, alias="mouseJitter",
        description="Mean absolute deviation of pointer step lengths",
    )
    session_token: str = Field(
        "", alias="sessionToken",
        description="Opaque client-supplied correlation key (untrusted)",
    )

    @field_validator("typing_speed", "mouse_jitter", mode="before")
    @classmethod
    def _default_numeric(cls, value: Any) -> float:
        return _lenient_number(value)

    @field_validator("session_token", mode="before")
    @classmethod
    def _default_token(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "BehaviorReport":
        """Build a report from an arbitrary decoded payload, never raising."""
        if not isinstance(payload, dict):
            payload = {}
        return cls.model_validate(payload)


class SessionInit(BaseModel):
    """Announces a session token so the server can record its metadata."""
    token: str = ""

    @field_validator("token", mode="before")
    @classmethod
    def _default_token(cls, value: Any) -> str:
        return "" if value is None else str(value)


# ----------------------------------------------------------------------
# Downstream (server → client)
# ----------------------------------------------------------------------

class RiskUpdate(BaseModel):
    """Independently computed risk score for one behavior report."""
    model_config = ConfigDict(populate_by_name=True)

    risk_score: int = Field(..., alias="riskScore", ge=0)
    reason: str


# ----------------------------------------------------------------------
# Envelope helpers
# ----------------------------------------------------------------------

def make_envelope(message_type: MessageType, body: BaseModel) -> Dict[str, Any]:
    """Wrap a model into the ``{type, payload}`` frame using wire field names."""
    return {
        "type": message_type.value,
        "payload": body.model_dump(by_alias=True),
    }


def parse_message_type(value: Any) -> Optional[MessageType]:
    """Return the known MessageType for a frame tag, or None if unrecognized."""
    try:
        return MessageType(value)
    except (ValueError, TypeError):
        return None
