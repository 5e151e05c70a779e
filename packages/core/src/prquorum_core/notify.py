"""Operational alerts (token mismatches, retry outcomes, approvals).

Notifications are fire-and-forget: a failed delivery is logged and never
interrupts the review.
"""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

TOKEN_MISMATCH = "token_mismatch"
RETRY_SUCCEEDED = "retry_succeeded"
RETRY_FAILED = "retry_failed"
UNKNOWN_FAILURE = "unknown_failure"
PR_APPROVED = "pr_approved"


class Notifier:
    """Default sink: writes notifications to the log."""

    def notify(self, event: str, message: str) -> None:
        logger.info("[%s] %s", event, message)


class WebhookNotifier(Notifier):
    """Posts notifications to a Slack-compatible incoming webhook."""

    def __init__(self, url: str, timeout: int = 10):
        self._url = url
        self._timeout = timeout

    def notify(self, event: str, message: str) -> None:
        super().notify(event, message)
        try:
            resp = requests.post(self._url, json={"text": f"[prquorum:{event}] {message}"}, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Webhook notification %s failed: %s", event, e)


def build_notifier(config: dict) -> Notifier:
    url = config.get("webhook_url")
    if url:
        return WebhookNotifier(url)
    return Notifier()
