"""Email delivery for verification codes.

Renders the code email and hands it to the configured mail provider, bounded
by ``email_delivery_timeout_seconds``.
"""

import asyncio

from app.config import settings
from app.database import ChallengePurpose
from app.log import log
from app.models.error import ErrorType, RequestError
from app.service.email_template_service import get_email_template_service
from app.service.mail_providers import MailDeliveryError, get_provider

logger = log("Email")


class EmailService:
    @staticmethod
    async def send_code(email: str, full_name: str, code: str, purpose: ChallengePurpose) -> None:
        """Deliver a verification code.

        Raises:
            RequestError: ``CODE_DELIVERY_FAILED`` if the provider fails or
                does not answer in time.
        """
        subject, html_content, text_content = get_email_template_service().render_code_email(
            full_name=full_name,
            code=code,
            purpose=purpose,
            expiry_minutes=settings.otp_expire_minutes,
        )
        provider = await get_provider()
        try:
            async with asyncio.timeout(settings.email_delivery_timeout_seconds):
                await provider.send_email(
                    to_email=email,
                    subject=subject,
                    content=text_content,
                    html_content=html_content,
                    metadata={"type": "verification_code", "purpose": str(purpose)},
                )
        except TimeoutError as e:
            logger.warning(f"Timed out delivering {purpose} code to {email}")
            raise RequestError(ErrorType.CODE_DELIVERY_FAILED) from e
        except MailDeliveryError as e:
            logger.warning(f"Failed to deliver {purpose} code to {email}: {e}")
            raise RequestError(ErrorType.CODE_DELIVERY_FAILED) from e
        logger.info(f"Delivered {purpose} code to {email}")
