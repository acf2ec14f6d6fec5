from pathlib import Path
from typing import List, Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from pydantic import EmailStr

from portal.core.config import settings

TEMPLATE_FOLDER = Path(__file__).parent.parent / 'templates'

_conf: Optional[ConnectionConfig] = None


def get_mail_config() -> ConnectionConfig:
    global _conf
    if _conf is None:
        _conf = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USERNAME,
            MAIL_PASSWORD=settings.MAIL_PASSWORD,
            MAIL_FROM=settings.MAIL_FROM,
            MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_SERVER,
            MAIL_STARTTLS=settings.MAIL_STARTTLS,
            MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
            USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
            VALIDATE_CERTS=True,
            SUPPRESS_SEND=1 if settings.MAIL_SUPPRESS_SEND else 0,
            TEMPLATE_FOLDER=TEMPLATE_FOLDER,
        )
    return _conf


async def send_email(to: str, subject: str, template_name: str, context: dict):
    """
    Renders `emails/<template_name>` with `context` and sends it to a single
    recipient. Errors propagate to the caller.
    """
    recipients: List[EmailStr] = [to]
    message = MessageSchema(
        subject=subject,
        recipients=recipients,
        template_body=context,
        subtype=MessageType.html,
    )

    fm = FastMail(get_mail_config())
    await fm.send_message(message, template_name=f"emails/{template_name}")
