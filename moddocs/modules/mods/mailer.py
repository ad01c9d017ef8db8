"""
Collaborator invitation emails.

Messages are plain text and delivered over SMTP from a worker thread so
the event loop never blocks on the mail server.
"""
import asyncio
import smtplib
from email.message import EmailMessage
from functools import partial
from typing import Optional

from structlog import get_logger

from moddocs.core.config import Settings, get_settings
from moddocs.core.metrics import record_invitation_email
from moddocs.core.rbac import ModRole

logger = get_logger(__name__)

ROLE_SUMMARIES = {
    ModRole.ADMIN: (
        "Manage collaborators and invite new members",
        "Create, edit, and delete pages",
        "Full access to the mod",
    ),
    ModRole.EDITOR: (
        "Create, edit, and publish pages",
        "Cannot manage collaborators or mod settings",
    ),
    ModRole.VIEWER: (
        "View private mod content",
        "Cannot edit or create pages",
    ),
}


def invitation_url(token: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.app_url.rstrip('/')}/invitations/{token}"


def build_invitation_email(
    *,
    to_address: str,
    collaborator_name: str,
    inviter_name: str,
    mod_name: str,
    role: ModRole,
    accept_url: str,
    settings: Optional[Settings] = None,
) -> EmailMessage:
    """Compose the invitation message."""
    settings = settings or get_settings()
    role = ModRole(role)
    permissions = "\n".join(f"- {line}" for line in ROLE_SUMMARIES.get(role, ()))

    body = (
        f"Hi {collaborator_name},\n\n"
        f"{inviter_name} has invited you to collaborate on {mod_name} "
        f"as a {role.value.capitalize()}.\n\n"
        f"Role permissions:\n{permissions}\n\n"
        f"Accept the invitation:\n{accept_url}\n\n"
        "If you don't want to collaborate on this mod, you can safely ignore this email.\n\n"
        f"Thanks,\n{settings.app_name}\n"
    )

    message = EmailMessage()
    message["Subject"] = f"You've been invited to collaborate on {mod_name}"
    message["From"] = settings.from_email
    message["To"] = to_address
    message.set_content(body)
    return message


class InvitationMailer:
    """Sends invitation emails through the configured SMTP server."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(
            self.settings.smtp_server,
            self.settings.smtp_port,
            timeout=self.settings.smtp_timeout,
        ) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            if self.settings.smtp_username and self.settings.smtp_password:
                server.login(self.settings.smtp_username, self.settings.smtp_password)
            server.send_message(message)

    async def send(self, message: EmailMessage) -> bool:
        """
        Deliver ``message``.

        Returns:
            True if the server accepted the message. Failures are logged
            and reported as False; they never propagate to the caller.
        """
        if not self.settings.mail_enabled:
            logger.info("Mail delivery disabled", to=message["To"], subject=message["Subject"])
            record_invitation_email(delivered=False)
            return False

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._deliver, message))
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Invitation email failed", to=message["To"], error=str(e))
            record_invitation_email(delivered=False)
            return False

        logger.info("Invitation email sent", to=message["To"])
        record_invitation_email(delivered=True)
        return True

    async def send_invitation(
        self,
        *,
        to_address: str,
        collaborator_name: str,
        inviter_name: str,
        mod_name: str,
        role: ModRole,
        token: str,
    ) -> bool:
        message = build_invitation_email(
            to_address=to_address,
            collaborator_name=collaborator_name,
            inviter_name=inviter_name,
            mod_name=mod_name,
            role=role,
            accept_url=invitation_url(token, self.settings),
            settings=self.settings,
        )
        return await self.send(message)


def get_mailer() -> InvitationMailer:
    """FastAPI dependency returning the mailer."""
    return InvitationMailer()
