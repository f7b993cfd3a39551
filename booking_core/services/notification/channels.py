# booking_core/services/notification/channels.py
"""Delivery channels for queued notifications (SMTP email, Twilio WhatsApp and SMS)"""
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional
import logging

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from booking_core.core.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class NotificationMessage:
    type: str
    recipient_email: str
    subject: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)
    recipient_phone: Optional[str] = None
    html: Optional[str] = None


class ChannelAdapter(ABC):
    """A single outbound channel. send() returns True when the provider accepted the message."""

    name = "channel"

    @abstractmethod
    def send(self, message: NotificationMessage) -> bool:
        ...

    def can_deliver(self, message: NotificationMessage) -> bool:
        return True


class EmailChannel(ChannelAdapter):
    """Sends email via SMTP"""

    name = "email"

    def __init__(
            self,
            host: str,
            port: int,
            from_address: str,
            from_name: str = "",
            username: Optional[str] = None,
            password: Optional[str] = None,
            use_tls: bool = True,
            timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.from_address = from_address
        self.from_name = from_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "EmailChannel":
        return cls(
            host=settings.EMAIL_HOST,
            port=settings.EMAIL_PORT,
            from_address=settings.EMAIL_FROM_ADDRESS,
            from_name=settings.EMAIL_FROM_NAME,
            username=settings.EMAIL_USERNAME,
            password=settings.EMAIL_PASSWORD,
            use_tls=settings.EMAIL_USE_TLS,
            timeout=settings.NOTIFICATION_SEND_TIMEOUT_SECONDS,
        )

    def _get_smtp_connection(self):
        """Create and return SMTP connection"""
        server = None
        try:
            if self.use_tls:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)

            if self.username and self.password:
                server.login(self.username, self.password)

            return server
        except Exception as e:
            logger.error(f"Failed to connect to SMTP server: {e}")
            if server is not None:
                server.close()
            raise

    def can_deliver(self, message: NotificationMessage) -> bool:
        return bool(message.recipient_email)

    def send(self, message: NotificationMessage) -> bool:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = message.subject
        msg['From'] = f"{self.from_name} <{self.from_address}>" if self.from_name else self.from_address
        msg['To'] = message.recipient_email

        # Plain text first, HTML last so clients prefer HTML
        msg.attach(MIMEText(message.body, 'plain'))
        if message.html:
            msg.attach(MIMEText(message.html, 'html'))

        server = self._get_smtp_connection()
        try:
            server.sendmail(self.from_address, [message.recipient_email], msg.as_string())
        finally:
            server.quit()

        logger.info(f"Email sent successfully to {message.recipient_email}")
        return True


class TwilioChannel(ChannelAdapter):
    """Shared Twilio client handling for SMS and WhatsApp"""

    address_prefix = ""

    def __init__(self, account_sid: Optional[str], auth_token: Optional[str], from_number: Optional[str],
                 timeout: float = 10.0, client: Optional[Client] = None):
        self.from_number = from_number
        if client is not None:
            self.client = client
        elif account_sid and auth_token:
            self.client = Client(account_sid, auth_token, http_client=TwilioHttpClient(timeout=timeout))
        else:
            self.client = None

    def _address(self, phone: str) -> str:
        if self.address_prefix and not phone.startswith(self.address_prefix):
            return f"{self.address_prefix}{phone}"
        return phone

    def can_deliver(self, message: NotificationMessage) -> bool:
        return self.client is not None and bool(self.from_number) and bool(message.recipient_phone)

    def send(self, message: NotificationMessage) -> bool:
        if not self.can_deliver(message):
            logger.warning(f"{self.name} channel cannot deliver {message.type}: client, sender or phone missing")
            return False

        try:
            twilio_message = self.client.messages.create(
                body=message.body,
                from_=self._address(self.from_number),
                to=self._address(message.recipient_phone)
            )
        except TwilioException as e:
            logger.error(f"Twilio error sending {self.name} to {message.recipient_phone}: {str(e)}")
            return False

        logger.info(f"{self.name} sent successfully to {message.recipient_phone}: {twilio_message.sid}")
        return True


class SMSChannel(TwilioChannel):
    name = "sms"

    @classmethod
    def from_settings(cls, settings) -> "SMSChannel":
        return cls(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_FROM_NUMBER,
            timeout=settings.NOTIFICATION_SEND_TIMEOUT_SECONDS,
        )


class WhatsAppChannel(TwilioChannel):
    name = "whatsapp"
    address_prefix = "whatsapp:"

    @classmethod
    def from_settings(cls, settings) -> "WhatsAppChannel":
        return cls(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_WHATSAPP_FROM,
            timeout=settings.NOTIFICATION_SEND_TIMEOUT_SECONDS,
        )


class ChannelRouter:
    """
    Picks channels by recipient type and tries them in order until one succeeds.

    Business recipients: WhatsApp, then email.
    Customer recipients: email, then SMS when SMS notifications are enabled.
    """

    def __init__(
            self,
            email: ChannelAdapter,
            whatsapp: Optional[ChannelAdapter] = None,
            sms: Optional[ChannelAdapter] = None,
            sms_enabled: bool = False
    ):
        self.email = email
        self.whatsapp = whatsapp
        self.sms = sms
        self.sms_enabled = sms_enabled

    def channels_for(self, recipient_type: str) -> List[ChannelAdapter]:
        if recipient_type == "business":
            channels = [self.whatsapp, self.email]
        elif recipient_type == "customer":
            channels = [self.email, self.sms if self.sms_enabled else None]
        else:
            raise ValueError(f"Unknown recipient type: {recipient_type}")
        return [channel for channel in channels if channel is not None]

    def dispatch(self, message: NotificationMessage, recipient_type: str) -> str:
        """Deliver through the first channel that accepts the message; returns the channel name"""
        errors = []
        for channel in self.channels_for(recipient_type):
            if not channel.can_deliver(message):
                continue
            try:
                if channel.send(message):
                    return channel.name
                errors.append(f"{channel.name}: rejected")
            except Exception as e:
                # Fall through to the next channel
                logger.warning(f"{channel.name} delivery of {message.type} failed: {e}")
                errors.append(f"{channel.name}: {e}")

        if not errors:
            raise NotificationDeliveryError(f"No channel available for {recipient_type} {message.type}")
        raise NotificationDeliveryError("; ".join(errors))
