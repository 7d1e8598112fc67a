# server/session_store.py
"""
Session Correlation Store

In-memory table of session metadata keyed by the client-supplied token.
The token is an untrusted label used only to group records.

Note: records are never evicted and live for the whole server process.
Memory therefore grows with the number of distinct tokens seen.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRecord:
    """Metadata captured when a session announces itself."""
    start_time: float        # Unix timestamp (seconds)
    source_address: str
    user_agent: str


class SessionCorrelationStore:
    """
    Token → SessionRecord map. Writes are last-writer-wins per token.
    Created at application start-up and cleared at shutdown.
    """

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}

    def create(self, token: str, record: SessionRecord) -> None:
        """Insert or overwrite the record for ``token``."""
        replaced = token in self._records
        self._records[token] = record
        logger.info(
            f"Session {'re-initialized' if replaced else 'registered'}: "
            f"{token[:8] or '?'} from {record.source_address}"
        )

    def get(self, token: str) -> Optional[SessionRecord]:
        return self._records.get(token)

    def clear(self) -> None:
        count = len(self._records)
        self._records.clear()
        logger.info(f"Session store cleared ({count} records)")

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, token: object) -> bool:
        return token in self._records
