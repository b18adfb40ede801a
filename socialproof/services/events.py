"""
Sync lifecycle events.

The broadcast channel is injected into adapters and the scheduler. The default
sink only logs at DEBUG, so the ingestion core runs without any channel.
"""
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

BATCH_STARTED = "sync.batch_started"
BATCH_FINISHED = "sync.batch_finished"
ACCOUNT_SYNCED = "sync.account_synced"
ACCOUNT_FAILED = "sync.account_failed"
ACCOUNT_CONNECTED = "account.connected"
ACCOUNT_DEACTIVATED = "account.deactivated"
TOKEN_REFRESHED = "token.refreshed"
TOKEN_REFRESH_FAILED = "token.refresh_failed"


class EventSink:
    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        logger.debug("[EventSink] %s %s", event, payload)
