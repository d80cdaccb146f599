"""Email template service.

Uses the Jinja2 template engine to render verification code emails.
"""

from pathlib import Path
from typing import Any

from app.config import settings
from app.database import ChallengePurpose
from app.helpers import utcnow
from app.log import log

from jinja2 import Environment, FileSystemLoader

logger = log("EmailTemplate")

SUBJECTS = {
    ChallengePurpose.SIGNUP: "Verify your email",
    ChallengePurpose.RESET: "Password reset code",
}


class EmailTemplateService:
    def __init__(self):
        template_dir = Path(__file__).parent.parent / "templates" / "email"
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        logger.debug(f"Email templates loaded from {template_dir}")

    def render(self, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """Render the HTML and plain text variants of a template.

        Returns:
            Tuple of (HTML content, plain text content).
        """
        html_content = self.env.get_template(f"{template_name}.html").render(**context)
        text_content = self.env.get_template(f"{template_name}.txt").render(**context)
        return html_content, text_content

    def render_code_email(
        self,
        full_name: str,
        code: str,
        purpose: ChallengePurpose,
        expiry_minutes: int,
    ) -> tuple[str, str, str]:
        """Render a verification code email.

        Returns:
            Tuple of (subject, HTML content, plain text content).
        """
        subject = f"{SUBJECTS[purpose]} - {settings.from_name}"
        context = {
            "subject": subject,
            "full_name": full_name,
            "code": code,
            "purpose": str(purpose),
            "expiry_minutes": expiry_minutes,
            "server_name": settings.from_name,
            "year": utcnow().year,
        }
        html_content, text_content = self.render("verification_code", context)
        return subject, html_content, text_content


_email_template_service: EmailTemplateService | None = None


def get_email_template_service() -> EmailTemplateService:
    global _email_template_service
    if _email_template_service is None:
        _email_template_service = EmailTemplateService()
    return _email_template_service
