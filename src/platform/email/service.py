import datetime

from jinja2 import Environment, PackageLoader, select_autoescape
from loguru import logger

from src import settings
from src.platform.email import client

EMAIL_CLIENT_MAP = {
    'file': client.EmailFileClient,
    'smtp': client.SMTPEmailClient,
    'live': client.ResilientLiveEmailClient,
}

templates = Environment(
    loader=PackageLoader('src.platform.email', 'templates'),
    autoescape=select_autoescape(['html', 'xml']),
)


def render_template(template_name: str, context: dict) -> str:
    return templates.get_template(template_name).render(
        copyright_year=datetime.date.today().year,
        company_name=settings.COMPANY_NAME,
        support_email=settings.SUPPORT_EMAIL,
        **context,
    )


def get_email_client_class() -> type[client.AbstractEmailClient]:
    if settings.USE_MOCK_EMAIL_CLIENT:
        return client.MockEmailClient
    return EMAIL_CLIENT_MAP[settings.EMAIL_BACKEND]


class EmailService:
    def __init__(self, email_client: client.AbstractEmailClient | None = None):
        # Resolved on first send, nothing connects at construction
        self._client = email_client

    @property
    def client(self) -> client.AbstractEmailClient:
        if self._client is None:
            self._client = get_email_client_class()()
        return self._client

    @classmethod
    def factory(cls) -> 'EmailService':
        return cls()

    @staticmethod
    def tag_subject(subject: str) -> str:
        # Mail from anywhere but production names its environment
        return subject if settings.IS_PRODUCTION else f'{subject} - [{settings.ENVIRONMENT}]'

    def send(
        self,
        subject: str,
        recipients: list[str],
        plain_message: str | None = None,
        html_message: str | None = None,
    ):
        """
        Raises EmailFailedToSend
        """
        message = client.EmailClientDomain(
            from_email=(settings.EMAIL_FROM_ADDRESS, settings.COMPANY_NAME),
            to_emails=recipients,
            subject=self.tag_subject(subject),
            plain_text_content=plain_message,
            html_content=html_message,
        )
        logger.info(f'sending "{subject}" to {message.masked_recipients}')
        self.client.send(message)

    def send_verification_code(self, recipient: str, code: str, plain_message: str):
        expires_in_seconds = int(settings.OTP_SETTINGS['CODE_TTL'].total_seconds())
        self.send(
            subject=f'Your {settings.COMPANY_NAME} verification code',
            recipients=[recipient],
            plain_message=plain_message,
            html_message=render_template(
                'verification-code.html', {'code': code, 'expires_in_seconds': expires_in_seconds}
            ),
        )
