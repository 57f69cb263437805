import smtplib
from email.message import EmailMessage


def send_email(settings, to_email: str, subject: str, body: str):
    """Send a plain-text email using the SMTP_* keys of ``settings``.

    Returns ``(sent, error)``; never raises.
    """
    host = settings.get("SMTP_HOST")
    port = settings.get("SMTP_PORT", 587)
    username = settings.get("SMTP_USERNAME")
    password = settings.get("SMTP_PASSWORD")
    from_email = settings.get("SMTP_FROM_EMAIL") or username
    use_tls = settings.get("SMTP_USE_TLS", True)
    timeout = settings.get("SMTP_TIMEOUT_SECONDS", 10)

    if not host or not from_email:
        return False, "Email not configured"
    if not to_email:
        return False, "No recipient"

    try:
        # header values with line breaks raise ValueError here
        msg = EmailMessage()
        msg["From"] = from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        with smtplib.SMTP(host, port, timeout=timeout) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError, ValueError) as exc:
        return False, str(exc)
