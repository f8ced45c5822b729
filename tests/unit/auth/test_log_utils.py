"""Tests for the whitelisted auth logger adapter."""

from __future__ import annotations

import logging

import pytest

from msa_auth.auth.errors import OAuthError, UserCancelledError
from msa_auth.auth.log_utils import get_auth_logger, mask_sensitive


@pytest.mark.parametrize(
    "value, expected",
    [(None, ""), ("", ""), ("abc", "***"), ("EwAoA-secret-token", "EwAo****")],
)
def test_mask_sensitive(value, expected: str) -> None:  # noqa: ANN001
    assert mask_sensitive(value) == expected


def test_adapter_injects_only_whitelisted_context(caplog) -> None:  # noqa: ANN001
    log = get_auth_logger(
        base_logger_name="msa-auth.auth.test",
        client_id="000000004C12AE6F",
        flow_id="f00d",
    )
    with caplog.at_level(logging.INFO, logger="msa-auth.auth.test"):
        log.info("Opening login surface", extra={"flow_id": "override"})

    record = caplog.records[-1]
    assert record.client_id == "00000000"
    assert record.flow_id == "override"
    assert not hasattr(record, "correlation_id")


def test_error_payloads_carry_no_tokens() -> None:
    assert UserCancelledError().to_payload() == {
        "error": "user_cancelled",
        "error_description": None,
        "error_uri": None,
        "message": "The user cancelled the login operation.",
    }
    payload = OAuthError("invalid_grant", "expired").to_payload()
    assert payload["error"] == "invalid_grant"
    assert payload["message"] == "expired"
