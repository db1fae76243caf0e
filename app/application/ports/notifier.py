from typing import Optional, Protocol


class Notifier(Protocol):
    def notify_staff(self, user_id: str, type: str, title: str, message: str, link: Optional[str] = None) -> None:
        ...

    def send_email(self, to: str, subject: str, html: str) -> bool:
        ...

    def send_sms(self, to: str, body: str) -> bool:
        ...
