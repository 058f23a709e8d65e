# services for outbound notifications

import logging
import time

import requests
from django.conf import settings

from .models import NotificationLog

logger = logging.getLogger(__name__)


class SmsSender:
    """
    SMS gateway integration used for payment reminders.

    Without SMS_GATEWAY_URL configured the sender only logs the message and
    reports a mock success, which keeps local and test setups self-contained.
    """

    def __init__(self):
        self.base_url = getattr(settings, 'SMS_GATEWAY_URL', '')
        self.api_key = getattr(settings, 'SMS_GATEWAY_API_KEY', '')
        self.sender_id = getattr(settings, 'SMS_SENDER_ID', '')
        self.timeout = getattr(settings, 'SMS_GATEWAY_TIMEOUT', 15)

    def send(self, to, text):
        """
        Send one SMS.

        Args:
            to: Destination phone number
            text: Message body

        Returns:
            dict: {'success': bool, 'provider_id': str, 'error': str}
        """
        if not self.base_url:
            logger.info(f"[SMS] Gateway not configured, mock send to {to}")
            return {
                'success': True,
                'provider_id': f"mock-{int(time.time() * 1000)}",
                'error': None
            }

        try:
            headers = {
                'Authorization': f"Bearer {self.api_key}",
                'Content-Type': 'application/json'
            }
            payload = {
                'to': to,
                'from': self.sender_id,
                'text': text
            }

            response = requests.post(self.base_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()

            data = response.json()
            logger.info(f"[SMS] Message sent to {to}")

            return {
                'success': True,
                'provider_id': data.get('id') or data.get('message_id'),
                'error': None
            }

        except requests.exceptions.RequestException as e:
            logger.error(f"[SMS] Send failed to {to}: {str(e)}")
            return {
                'success': False,
                'provider_id': None,
                'error': str(e)
            }


class WebhookNotifier:
    """
    Forwards notification events to an external webhook (NOTIFY_WEBHOOK_URL).
    """

    def __init__(self):
        self.url = getattr(settings, 'NOTIFY_WEBHOOK_URL', '')
        self.timeout = getattr(settings, 'NOTIFY_WEBHOOK_TIMEOUT', 10)

    @property
    def enabled(self):
        return bool(self.url)

    def deliver(self, kind, payload):
        try:
            response = requests.post(
                self.url,
                json={'kind': kind, 'payload': payload},
                timeout=self.timeout
            )
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"[Notify] Webhook delivery failed for {kind}: {str(e)}")
            return False


def record(kind, payload):
    """Append one entry to the notification/audit log."""
    return NotificationLog.objects.create(type=kind, payload=payload or {})


def send(kind, payload):
    """
    Emit a notification event.

    The event is logged and stored before delivery is attempted, so the
    audit trail holds every emission whatever happens downstream.
    """
    logger.info(f"[Notify] {kind}: {payload}")
    entry = record(kind, payload)

    notifier = WebhookNotifier()
    if notifier.enabled:
        notifier.deliver(kind, payload)

    return entry
