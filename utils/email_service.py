"""SMTP-backed dispatcher for account verification emails."""
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

from flask import current_app


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


def _resolve_sender() -> str:
    return current_app.config.get("MAIL_DEFAULT_SENDER") or current_app.config.get("MAIL_USERNAME") or ""


def _dispatch_email(subject: str, text_body: str, html_body: str, recipients: list[str]) -> None:
    if not recipients:
        raise EmailDeliveryError("No recipients resolved for email dispatch")

    sender = _resolve_sender()
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()
    msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")

    host = current_app.config.get("MAIL_SERVER")
    port = int(current_app.config.get("MAIL_PORT", 25))
    username = current_app.config.get("MAIL_USERNAME")
    password = current_app.config.get("MAIL_PASSWORD")
    use_tls = bool(current_app.config.get("MAIL_USE_TLS"))
    use_ssl = bool(current_app.config.get("MAIL_USE_SSL"))

    if not host:
        raise EmailDeliveryError("MAIL_SERVER is not configured")

    try:
        if use_ssl:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(host, port, context=context) as server:
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(host, port) as server:
                server.ehlo()
                if use_tls:
                    server.starttls(context=ssl.create_default_context())
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.exception("SMTP delivery failed", extra={"recipients": recipients})
        raise EmailDeliveryError(str(exc)) from exc


def send_verification_email(email: str, code: str, ttl_minutes: int) -> None:
    subject = "TerraUrb - Código de verificação"
    text_body = (
        f"Seu código de verificação é: {code}\n\n"
        f"O código expira em {ttl_minutes} minutos. "
        "Se você não solicitou este código, ignore este e-mail."
    )
    html_body = (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h2 style=\"color: #2F855A;\">Verificação de E-mail</h2>"
        "<p>Seu código de verificação é:</p>"
        f"<h1 style=\"letter-spacing: 5px; color: #2F855A;\">{code}</h1>"
        f"<p>O código expira em {ttl_minutes} minutos.</p>"
        "<p>Se você não solicitou este código, ignore este e-mail.</p>"
        "</div>"
    )
    _dispatch_email(subject, text_body, html_body, [email])
    current_app.logger.info("Verification email sent", extra={"recipient": email})
