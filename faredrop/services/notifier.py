import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from faredrop.core.config import settings
from faredrop.core.constants import BOOKING_URL_TEMPLATE
from faredrop.models.watch import Watch

logger = logging.getLogger('faredrop')


def booking_link(watch: Watch) -> str:
    return BOOKING_URL_TEMPLATE.format(
        origin=watch.origin,
        destination=watch.destination,
        departure_date=watch.departure_date.isoformat(),
    )


def render_price_drop_message(
    watch: Watch, current_price: float
) -> tuple[str, str]:
    """Subject and plain-text body of a price-drop alert."""
    savings = watch.price_threshold - current_price
    route = f'{watch.origin} -> {watch.destination}'
    subject = (
        f'Price drop: {route} now {watch.currency} {current_price:.2f}'
    )
    lines = [
        f'Good news! The fare for {route} dropped below your target.',
        '',
        f'Departure date: {watch.departure_date.isoformat()}',
    ]
    if watch.return_date:
        lines.append(f'Return date: {watch.return_date.isoformat()}')
    lines += [
        f'Current price: {watch.currency} {current_price:.2f}',
        f'Your threshold: {watch.currency} {watch.price_threshold:.2f}',
        f'You save: {watch.currency} {savings:.2f}',
        '',
        f'Book now: {booking_link(watch)}',
    ]
    return subject, '\n'.join(lines)


class EmailNotifier:
    """Best-effort SMTP delivery of price-drop alerts."""

    def __init__(
        self,
        sender: Optional[str],
        recipient: Optional[str],
        smtp_server: str,
        smtp_port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.sender = sender
        self.recipient = recipient
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.username = username
        self.password = password

    @classmethod
    def from_settings(cls) -> 'EmailNotifier':
        return cls(
            sender=settings.notification_sender,
            recipient=settings.get_notification_recipient(),
            smtp_server=settings.get_smtp_server(),
            smtp_port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
        )

    def _send(self, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg['Subject'] = subject
        msg['From'] = self.sender
        msg['To'] = self.recipient
        msg.set_content(body)
        with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port) as smtp:
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send_price_drop_alert(
        self, watch: Watch, current_price: float
    ) -> bool:
        if not self.sender or not self.recipient:
            logger.error('Notification sender/recipient are not set.')
            return False
        subject, body = render_price_drop_message(watch, current_price)
        try:
            await asyncio.to_thread(self._send, subject, body)
        except Exception as e:
            logger.error(
                f'Failed to send price drop email for {watch.watch_id}: {e}'
            )
            return False
        logger.info(f'Price drop email sent to {self.recipient}')
        return True
