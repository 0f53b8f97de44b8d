"""
Unit tests for gcloud identity tokens.

Run: pytest tests/unit/test_gcp_auth.py -v
"""

import subprocess
import pytest

from integrations.gcp_auth import GcloudTokenProvider


class TestGetToken:
    """Tests for GcloudTokenProvider.get_token()"""

    @pytest.mark.asyncio
    async def test_reuses_token_for_55_minutes(self, clock, monkeypatch):
        # Arrange
        provider = GcloudTokenProvider(clock=clock)
        tokens = iter(["token-1", "token-2"])
        monkeypatch.setattr(provider, "_run_gcloud", lambda: next(tokens))

        # Act
        first = await provider.get_token()
        clock.advance(54 * 60)
        second = await provider.get_token()
        clock.advance(2 * 60)
        third = await provider.get_token()

        # Assert
        assert (first, second, third) == ("token-1", "token-1", "token-2")

    @pytest.mark.asyncio
    async def test_missing_gcloud_returns_none(self, clock, monkeypatch):
        provider = GcloudTokenProvider(clock=clock)

        def missing():
            raise FileNotFoundError("gcloud")

        monkeypatch.setattr(provider, "_run_gcloud", missing)

        assert await provider.get_token() is None

    @pytest.mark.asyncio
    async def test_gcloud_failure_returns_none(self, clock, monkeypatch):
        provider = GcloudTokenProvider(clock=clock)

        def failing():
            raise subprocess.CalledProcessError(1, ["gcloud"])

        monkeypatch.setattr(provider, "_run_gcloud", failing)

        assert await provider.get_token() is None
