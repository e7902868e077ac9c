"""
Tests for the notifications module.
"""

from unittest.mock import MagicMock

import pytest

from app.flash_liquidator import notifications
from app.flash_liquidator.models import LiquidationPlan


@pytest.fixture()
def apprise(monkeypatch):
    instance = MagicMock()
    instance.notify.return_value = True
    monkeypatch.setattr(notifications, "Apprise", MagicMock(return_value=instance))
    return instance


def test_no_url_adds_no_service(config, apprise):
    config.NOTIFICATION_URL = ""
    notifications.setup_apprise_notification_object(config)
    apprise.add.assert_not_called()


def test_url_is_registered(config, apprise):
    config.NOTIFICATION_URL = "json://localhost"
    notifications.setup_apprise_notification_object(config)
    apprise.add.assert_called_once_with("json://localhost")


def test_post_error_notification(config, apprise):
    assert notifications.post_error_notification("Test error message", config)
    body = apprise.notify.call_args.kwargs["body"]
    assert "Test error message" in body
    assert "Ethereum" in body


def test_post_error_notification_without_config(apprise):
    assert notifications.post_error_notification("Test error message")


def test_post_liquidation_result_notification(config, apprise):
    plan = LiquidationPlan(user="0xBorrower", max_repayable=10**10, amount=6 * 10**9, expected_profit=3 * 10**16)
    assert notifications.post_liquidation_result_notification(plan, 5 * 10**16, "0xabc", config)

    body = apprise.notify.call_args.kwargs["body"]
    assert "0xBorrower" in body
    assert "0.05 ETH" in body
    assert f"{config.EXPLORER_URL}/tx/0xabc" in body


def test_result_notification_without_realized_surplus(config, apprise):
    plan = LiquidationPlan(user="0xBorrower", max_repayable=10**10, amount=6 * 10**9, expected_profit=3 * 10**16)
    assert notifications.post_liquidation_result_notification(plan, None, "0xabc", config)

    body = apprise.notify.call_args.kwargs["body"]
    assert "Forwarded to operator: not reported" in body
