"""
GCP identity tokens for calling a Cloud Run hosted MCP server.

Tokens come from the gcloud CLI and are reused for 55 minutes (they are
valid for 60).
"""

import asyncio
import subprocess
from datetime import datetime, timedelta
from typing import Callable, Optional
import structlog

logger = structlog.get_logger(__name__)

TOKEN_LIFETIME = timedelta(minutes=55)
GCLOUD_COMMAND = ["gcloud", "auth", "print-identity-token"]


class GcloudTokenProvider:
    """Fetch and cache `gcloud auth print-identity-token` output."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def _run_gcloud(self) -> str:
        result = subprocess.run(
            GCLOUD_COMMAND,
            capture_output=True,
            text=True,
            check=True,
            timeout=30
        )
        return result.stdout.strip()

    async def get_token(self) -> Optional[str]:
        """
        Get a cached or fresh identity token.

        Returns:
            Token, or None if gcloud is unavailable (calls go out unauthenticated)
        """
        now = self._clock()
        if self._token and self._expires_at and now < self._expires_at:
            return self._token

        try:
            token = await asyncio.to_thread(self._run_gcloud)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("gcloud_token_failed", error=str(e), error_type=type(e).__name__)
            return None

        self._token = token
        self._expires_at = now + TOKEN_LIFETIME
        logger.info("gcloud_token_refreshed")
        return token
