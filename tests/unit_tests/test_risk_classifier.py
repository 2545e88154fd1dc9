"""Tests for permission risk classification."""

import pytest

from shadowit.constants.enums import RiskLevel
from shadowit.services.risk_classifier import classify, classify_permission


class TestClassifyPermission:
    """Tests for single scope classification."""

    @pytest.mark.parametrize(
        "scope, expected",
        [
            ("Mail.ReadWrite", RiskLevel.HIGH),
            ("Files.ReadWrite.All", RiskLevel.HIGH),
            ("Mail.Send", RiskLevel.HIGH),
            ("https://mail.google.com/", RiskLevel.HIGH),
            ("https://www.googleapis.com/auth/drive.readonly", RiskLevel.HIGH),
            ("User.Read.All", RiskLevel.MEDIUM),
            ("User.Read", RiskLevel.MEDIUM),
            ("https://www.googleapis.com/auth/calendar.readonly", RiskLevel.MEDIUM),
            ("offline_access", RiskLevel.LOW),
            ("openid", RiskLevel.LOW),
        ],
    )
    def test_known_scopes(self, scope, expected):
        assert classify_permission(scope) == expected


class TestClassify:
    """Tests for the aggregate level of a scope set."""

    def test_highest_level_wins(self):
        assert classify(["openid", "User.Read", "Mail.ReadWrite"]) == RiskLevel.HIGH

    def test_medium_without_high(self):
        assert classify(["openid", "User.Read.All"]) == RiskLevel.MEDIUM

    def test_empty_set_is_low(self):
        assert classify([]) == RiskLevel.LOW

    def test_order_does_not_matter(self):
        scopes = ["Mail.Send", "openid", "Calendars.Read"]
        assert classify(scopes) == classify(list(reversed(scopes)))
