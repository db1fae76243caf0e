import logging
from typing import Optional
from twilio.rest import Client

from ...config import settings

logger = logging.getLogger(__name__)


class TwilioSmsSender:
    def __init__(self, client: Optional[Client] = None, from_number: Optional[str] = None):
        if client is None and settings.sms_enabled:
            client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        self.client = client
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER

    def send(self, to: str, body: str) -> bool:
        if not self.client or not self.from_number:
            logger.info("Twilio not configured, SMS not sent")
            return False
        message = self.client.messages.create(body=body, from_=self.from_number, to=to)
        logger.info(f"SMS {message.sid} sent to {to}")
        return True
