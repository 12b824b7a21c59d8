"""Unit tests for operator token checks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import Request

from compat_gateway.api.dependencies import require_admin
from compat_gateway.config import SecurityConfig, Settings
from compat_gateway.errors import ForbiddenError


def create_mock_request(headers: dict[str, str] | None = None) -> Request:
    """Create a mock FastAPI Request with given headers."""
    mock_request = MagicMock(spec=Request)
    mock_request.headers = headers or {}
    mock_request.client = None
    return mock_request


def create_mock_runtime(admin_token: str | None) -> MagicMock:
    runtime = MagicMock()
    runtime.settings = Settings(security=SecurityConfig(admin_token=admin_token))
    return runtime


class TestRequireAdmin:
    def test_disabled_without_token(self):
        """No configured token disables the operator API entirely."""
        with pytest.raises(ForbiddenError, match="disabled"):
            require_admin(
                create_mock_request({"X-Admin-Token": "anything"}),
                create_mock_runtime(None),
            )

    def test_wrong_token(self):
        with pytest.raises(ForbiddenError):
            require_admin(
                create_mock_request({"X-Admin-Token": "nope"}),
                create_mock_runtime("s3cret"),
            )

    def test_missing_header(self):
        with pytest.raises(ForbiddenError):
            require_admin(create_mock_request(), create_mock_runtime("s3cret"))

    def test_correct_token(self):
        result = require_admin(
            create_mock_request({"X-Admin-Token": "s3cret"}),
            create_mock_runtime("s3cret"),
        )

        assert result == "operator"
