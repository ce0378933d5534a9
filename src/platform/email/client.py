import smtplib
from email.message import EmailMessage

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from pydantic import model_validator
from slugify import slugify

from src import settings
from src.common.domain import BaseDomain
from src.common.utils import mask_destination
from src.platform.email.exceptions import EmailFailedToSend
from src.platform.outbound import OutboundClient, PreviewWriter, deliver_with_failover


class EmailClientDomain(BaseDomain):
    """
    Provider neutral message every email client accepts
    """

    # (address, display name)
    from_email: tuple[str, str] | None = None
    to_emails: list[str] | None = None
    subject: str | None = None
    plain_text_content: str | None = None
    html_content: str | None = None

    @model_validator(mode='after')
    def validate_content(self):
        if self.plain_text_content is None and self.html_content is None:
            raise ValueError('Must supply at least one of a plain_text_content or html_content')

        return self

    @property
    def masked_recipients(self) -> str:
        return ', '.join(mask_destination(email) for email in self.to_emails or [])

    @property
    def sender_header(self) -> str | None:
        if not self.from_email:
            return None
        address, name = self.from_email
        return f'{name} <{address}>'

    def to_mime(self) -> EmailMessage:
        mime = EmailMessage()
        mime['Subject'] = self.subject
        if self.sender_header:
            mime['From'] = self.sender_header
        mime['To'] = ', '.join(self.to_emails or [])

        if self.plain_text_content:
            mime.set_content(self.plain_text_content)
        if self.html_content:
            mime.add_alternative(self.html_content, subtype='html')

        return mime


class AbstractEmailClient(OutboundClient):
    def send(self, message: EmailClientDomain):
        """
        Raises EmailFailedToSend
        """
        raise NotImplementedError


class SMTPEmailClient(AbstractEmailClient):
    """
    Any SMTP relay, including a local catcher such as MailPit
    """

    def __init__(self, *args, **kwargs):
        if not settings.EMAIL_SMTP_HOST:
            raise ValueError('EMAIL_SMTP_HOST is required')
        super().__init__(*args, **kwargs)
        self.address = (settings.EMAIL_SMTP_HOST, settings.EMAIL_SMTP_PORT)

    def send(self, message: EmailClientDomain):
        host, port = self.address
        try:
            with smtplib.SMTP(host, port, timeout=self.timeout) as server:
                if settings.EMAIL_SMTP_USE_TLS:
                    server.starttls()
                if settings.EMAIL_SMTP_USER:
                    server.login(settings.EMAIL_SMTP_USER, settings.EMAIL_SMTP_PASSWORD or '')
                server.send_message(message.to_mime())
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning(f'SMTP delivery to {message.masked_recipients} failed: {exc}')
            raise EmailFailedToSend(message=f'SMTP failed: {message.masked_recipients}') from exc

        logger.info(f'SMTP relay {host}:{port} accepted mail for {message.masked_recipients}')


class AWSEmailClient(AbstractEmailClient):
    def __init__(self, *args, **kwargs):
        if not (settings.AWS_SES_ACCESS_KEY_ID and settings.AWS_SES_SECRET_ACCESS_KEY):
            raise ValueError('AWS_SES_ACCESS_KEY_ID and AWS_SES_SECRET_ACCESS_KEY are required')
        super().__init__(*args, **kwargs)
        self.client = boto3.client(
            'ses',
            region_name=settings.AWS_REGION_NAME,
            aws_access_key_id=settings.AWS_SES_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SES_SECRET_ACCESS_KEY,
            config=Config(connect_timeout=self.timeout, read_timeout=self.timeout, retries={'max_attempts': 1}),
        )

    def send(self, message: EmailClientDomain):
        # Raw mail keeps the multipart body identical to what SMTP would send
        try:
            response = self.client.send_raw_email(
                Source=message.from_email[0],
                Destinations=message.to_emails,
                RawMessage={'Data': message.to_mime().as_string()},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning(f'SES delivery to {message.masked_recipients} failed: {exc}')
            raise EmailFailedToSend(message=f'SES failed: {message.masked_recipients}') from exc

        logger.info(f'SES accepted mail, MessageId {response.get("MessageId")}')
        return response


class MockEmailClient(AbstractEmailClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.email_catcher = self.get_email_catcher()

    def send(self, message: EmailClientDomain):
        logger.info(f'[MOCK EMAIL] To: {message.masked_recipients}')
        self.email_catcher.append(message)

    def get_email_catcher(self) -> list:
        """
        Patched by the test suite to collect outgoing mail
        """
        return []


class EmailFileClient(AbstractEmailClient):
    """
    Writes each message to TEMP_DIR with a header block, opened in the browser when running locally
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writer = PreviewWriter('email')

    def send(self, message: EmailClientDomain):
        path = self.write_email(message)
        if settings.IS_LOCAL:
            import webbrowser

            webbrowser.open(f'file:///{path}')
        return path

    @staticmethod
    def render(message: EmailClientDomain) -> str:
        headers = {
            'From': message.sender_header or 'None',
            'To': ', '.join(message.to_emails or []) or 'None',
            'Subject': message.subject,
        }
        if message.html_content is None:
            header_text = '\n'.join(f'{key}: {value}' for key, value in headers.items())
            return f'{header_text}\n\n{message.plain_text_content or ""}'

        header_html = '<br>'.join(f'<strong>{key}:</strong> {value}' for key, value in headers.items())
        return (
            '<div style="background-color: #f0f0f0; padding: 10px; margin-bottom: 20px; '
            f'border-radius: 5px; font-family: Arial, sans-serif; font-size: 14px;"><p>{header_html}</p></div>'
            + message.html_content
        )

    def write_email(self, message: EmailClientDomain) -> str:
        return self.writer.write(slugify(str(message.subject)), 'html', self.render(message))


class ResilientLiveEmailClient(AbstractEmailClient):
    CLIENT_PRIORITY_ORDER = [
        SMTPEmailClient,
        AWSEmailClient,
    ]

    def send(self, message: EmailClientDomain):
        return deliver_with_failover(
            self.CLIENT_PRIORITY_ORDER,
            lambda client: client.send(message),
            failure=EmailFailedToSend,
            description=message.masked_recipients,
            timeout=self.timeout,
        )
