import logging
from typing import Optional
from sqlmodel import Session

from ...application.ports.notifier import Notifier
from ...models import Notification
from .smtp_email import SmtpEmailSender
from .twilio_sms import TwilioSmsSender

logger = logging.getLogger(__name__)


class ClinicNotifier(Notifier):
    """Staff inbox rows plus patient e-mail and SMS."""

    def __init__(self, session: Session, email_sender: Optional[SmtpEmailSender] = None, sms_sender: Optional[TwilioSmsSender] = None):
        self.session = session
        self.email_sender = email_sender or SmtpEmailSender()
        self.sms_sender = sms_sender or TwilioSmsSender()

    def notify_staff(self, user_id: str, type: str, title: str, message: str, link: Optional[str] = None) -> None:
        try:
            self.session.add(Notification(user_id=user_id, type=type, title=title, message=message, link=link))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def send_email(self, to: str, subject: str, html: str) -> bool:
        return self.email_sender.send(to, subject, html)

    def send_sms(self, to: str, body: str) -> bool:
        return self.sms_sender.send(to, body)
