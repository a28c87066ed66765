"""Tests for API key and admin secret checks."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from src.api.auth import verify_admin_secret, verify_api_key
from src.config.settings import Settings


class TestVerifyApiKey:
    """verify_api_key behavior."""

    @pytest.mark.asyncio
    async def test_dev_mode_without_keys(self):
        with patch("src.api.auth.get_settings", return_value=Settings(api_keys=None)):
            assert await verify_api_key(None) == "dev-mode"

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self):
        with patch("src.api.auth.get_settings", return_value=Settings(api_keys="k1,k2")):
            with pytest.raises(HTTPException) as exc_info:
                await verify_api_key(None)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_key_accepted(self):
        with patch("src.api.auth.get_settings", return_value=Settings(api_keys="k1, k2")):
            assert await verify_api_key("k2") == "k2"

    @pytest.mark.asyncio
    async def test_unknown_key_rejected(self):
        with patch("src.api.auth.get_settings", return_value=Settings(api_keys="k1")):
            with pytest.raises(HTTPException) as exc_info:
                await verify_api_key("k9")
        assert exc_info.value.detail == "Invalid API key"


class TestVerifyAdminSecret:
    """verify_admin_secret behavior."""

    @pytest.mark.asyncio
    async def test_unconfigured_returns_503(self):
        with patch("src.api.auth.get_settings", return_value=Settings(admin_secret=None)):
            with pytest.raises(HTTPException) as exc_info:
                await verify_admin_secret("anything")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_matching_secret_passes(self):
        with patch("src.api.auth.get_settings", return_value=Settings(admin_secret="s3cret")):
            assert await verify_admin_secret("s3cret") is None

    @pytest.mark.asyncio
    async def test_mismatch_returns_401(self):
        with patch("src.api.auth.get_settings", return_value=Settings(admin_secret="s3cret")):
            with pytest.raises(HTTPException) as exc_info:
                await verify_admin_secret("s3crex")
        assert exc_info.value.status_code == 401
