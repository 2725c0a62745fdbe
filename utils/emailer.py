"""
Outgoing mail. Everything here is best-effort: callers get (ok, error) back
and a delivery failure never changes a booking.
"""
import smtplib
from email.message import EmailMessage

from flask import current_app


def _message(sender: str, to_email: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


def send_email(to_email: str, subject: str, body: str):
    cfg = current_app.config
    host = cfg.get("SMTP_HOST")
    username = cfg.get("SMTP_USERNAME")
    sender = cfg.get("SMTP_FROM_EMAIL") or username
    if not host or not sender:
        return False, "Email not configured"

    try:
        with smtplib.SMTP(host, cfg.get("SMTP_PORT", 587), timeout=10) as server:
            if cfg.get("SMTP_USE_TLS", True):
                server.starttls()
            if username and cfg.get("SMTP_PASSWORD"):
                server.login(username, cfg.get("SMTP_PASSWORD"))
            server.send_message(_message(sender, to_email, subject, body))
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.warning("Email to %s failed: %s", to_email, exc)
        return False, str(exc)


def notify_booking_status(user, booking, status: str):
    if not user or not user.email:
        return False, "No recipient"
    slot = booking.slot
    window = f"{slot.date.isoformat()} {slot.start_time.strftime('%H:%M')}-{slot.end_time.strftime('%H:%M')}"
    body = (
        f"Hi {user.full_name or user.email},\n\n"
        f"Your booking #{booking.id} for {window} is now {status.lower()}.\n"
        f"Amount: {booking.total_amount}\n"
    )
    return send_email(user.email, f"Booking #{booking.id} {status.lower()}", body)
