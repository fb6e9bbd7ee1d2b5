import logging
import os
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage

from errors import MailerConfigError, RecipientNotFoundError, TransportError


logger = logging.getLogger(__name__)

SUBJECT = "Gift Exchange"


def _truthy(value) -> bool:
    return str(value or '').lower() in ('1', 'true', 'yes', 'on')


@dataclass
class MailerConfig:
    host: str
    port: int = 587
    user: str = ""
    password: str = ""
    starttls: bool = True
    sender: str = ""

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        host = (env.get('SMTP_HOST') or '').strip()
        if not host:
            raise MailerConfigError("SMTP_HOST is not set")
        try:
            port = int(env.get('SMTP_PORT') or 587)
        except ValueError as exc:
            raise MailerConfigError("SMTP_PORT must be an integer") from exc
        starttls = env.get('SMTP_STARTTLS')
        return cls(
            host=host,
            port=port,
            user=(env.get('SMTP_USER') or '').strip(),
            password=env.get('SMTP_PASSWORD') or '',
            starttls=True if starttls is None else _truthy(starttls),
            sender=(env.get('MAIL_FROM') or '').strip(),
        )


class MailerClient:
    """Sends one message per SMTP session."""

    def __init__(self, config: MailerConfig):
        self.config = config

    @classmethod
    def new(cls):
        return cls(MailerConfig.from_env())

    def get_user(self) -> str:
        return self.config.sender or self.config.user

    def _connect(self):
        cfg = self.config
        if cfg.port == 465:
            return smtplib.SMTP_SSL(cfg.host, cfg.port, context=ssl.create_default_context())
        server = smtplib.SMTP(cfg.host, cfg.port)
        if cfg.starttls:
            server.starttls(context=ssl.create_default_context())
        return server

    def send(self, message: EmailMessage) -> None:
        try:
            with self._connect() as server:
                if self.config.user:
                    server.login(self.config.user, self.config.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"Error sending email to {message['To']}") from exc


def create_email(sender: str, giver, recipient) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = giver.email
    msg["Subject"] = SUBJECT
    msg.set_content(
        f"Your gift is for: {recipient.name}\nContext: {recipient.note}\n",
        subtype="plain",
        charset="utf-8",
    )
    return msg


@dataclass
class DeliveryReport:
    sent: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self):
        if self.failed:
            givers = sorted(self.failed)
            raise TransportError(
                f"Failed to notify {len(givers)} giver(s): {', '.join(givers)}",
                givers=givers,
            )

    def to_dict(self):
        return {"sent": list(self.sent), "failed": dict(self.failed)}


class Notifier:
    def __init__(self, client):
        self.client = client

    def send_all(self, couples, participants, only=None) -> DeliveryReport:
        """Email every giver the name and note of their recipient.

        Recipients are resolved before anything is sent: a name missing from
        the registry means the draw and the registry disagree, so the whole
        batch stops. Transport failures are recorded per giver and the
        remaining messages still go out.
        """
        by_name = {p.name: p for p in participants}
        wanted = set(only) if only is not None else None

        resolved = []
        for giver_name, recipient_name in couples:
            if wanted is not None and giver_name not in wanted:
                continue
            giver = by_name.get(giver_name)
            if giver is None:
                raise RecipientNotFoundError(f"Giver {giver_name!r} is not in the participant list")
            recipient = by_name.get(recipient_name)
            if recipient is None:
                raise RecipientNotFoundError(
                    f"Recipient for {giver_name!r} is not in the participant list"
                )
            resolved.append((giver, recipient))

        if wanted is not None:
            unknown = wanted - {giver.name for giver, _ in resolved}
            if unknown:
                raise RecipientNotFoundError(
                    f"Not givers in this draw: {', '.join(sorted(unknown))}"
                )

        sender = self.client.get_user()
        report = DeliveryReport()
        logger.info("Sending %d emails...", len(resolved))
        for giver, recipient in resolved:
            try:
                self.client.send(create_email(sender, giver, recipient))
            except TransportError as exc:
                logger.warning("Could not notify %s: %s", giver.name, exc)
                report.failed[giver.name] = str(exc)
            else:
                logger.debug("Notified %s", giver.name)
                report.sent.append(giver.name)

        logger.info("Sent %d emails, %d failed", len(report.sent), len(report.failed))
        return report
