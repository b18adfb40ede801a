"""
Thin client for Apify actor runs.

Every scrape-based adapter runs an actor synchronously and reads back the
default dataset in one HTTP call (``run-sync-get-dataset-items``).
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from socialproof.core.errors import UpstreamError

logger = logging.getLogger(__name__)

APIFY_API_BASE = "https://api.apify.com/v2"


class ApifyClient:
    def __init__(
        self,
        api_token: str,
        run_timeout_seconds: int = 120,
        session: Optional[requests.Session] = None,
        base_url: str = APIFY_API_BASE,
    ):
        if not api_token:
            raise ValueError("Apify API token is required")
        self._api_token = api_token
        self.run_timeout_seconds = run_timeout_seconds
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def __repr__(self):
        return f"<ApifyClient(base_url={self.base_url})>"

    def run_actor(self, actor_id: str, run_input: Dict[str, Any], limit: Optional[int] = None) -> List[dict]:
        """
        Run ``actor_id`` with ``run_input`` and return its dataset items.

        Raises:
            UpstreamError: on HTTP failure, timeout or a non-list payload.
        """
        # Actor ids use "user/name" in the console and "user~name" in URLs
        url = f"{self.base_url}/acts/{actor_id.replace('/', '~')}/run-sync-get-dataset-items"
        params: Dict[str, Any] = {"timeout": self.run_timeout_seconds}
        if limit is not None:
            params["limit"] = limit
        headers = {"Authorization": f"Bearer {self._api_token}"}

        logger.info("[Apify] Running actor %s", actor_id)
        try:
            response = self.session.post(
                url,
                params=params,
                json=run_input,
                headers=headers,
                # Leave headroom over the actor's own run timeout
                timeout=self.run_timeout_seconds + 30,
            )
        except requests.Timeout:
            raise UpstreamError(f"Apify actor {actor_id} timed out")
        except requests.RequestException as e:
            raise UpstreamError(f"Apify actor {actor_id} request failed: {e.__class__.__name__}")

        if response.status_code not in (200, 201):
            detail = response.text[:300] if response.text else ""
            logger.error("[Apify] Actor %s failed with status %s: %s", actor_id, response.status_code, detail)
            raise UpstreamError(
                f"Apify actor {actor_id} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            items = response.json()
        except ValueError:
            raise UpstreamError(f"Apify actor {actor_id} returned invalid JSON")

        if not isinstance(items, list):
            raise UpstreamError(f"Apify actor {actor_id} returned an unexpected payload")

        logger.info("[Apify] Actor %s returned %d item(s)", actor_id, len(items))
        return items
