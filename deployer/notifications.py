"""
Run alerts posted to a Slack webhook.
"""

import logging
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class SlackNotifier:
    def __init__(self, webhook: Optional[str]):
        self.webhook = webhook

    def send(self, message: str, fields: Optional[Dict[str, object]] = None):
        """Send alert to Slack. Delivery problems are logged, never raised."""
        if not self.webhook:
            return

        payload = {
            "text": f"Silica Deployment Alert: {message}",
            "attachments": [
                {
                    "fields": [
                        {"title": title, "value": str(value), "short": True}
                        for title, value in (fields or {}).items()
                    ]
                }
            ],
        }

        try:
            response = requests.post(self.webhook, json=payload, timeout=10)
            response.raise_for_status()
            logger.info("Slack alert sent successfully")
        except requests.RequestException as e:
            logger.error(f"Failed to send Slack alert: {e}")
