"""Welcome email content for new and returning subscribers"""

from dataclasses import dataclass
from html import escape
from typing import Optional

from app.config import APP_URL, PRODUCT_NAME


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


def _greeting_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return name.strip().split()[0] if name.strip() else ""


def welcome_email(email: str, name: Optional[str], magic_link: str, product_name: str = PRODUCT_NAME) -> EmailContent:
    """
    First-time subscriber email with a one-time sign-in link.

    The link is the only credential the customer receives, so it must be
    present in both the HTML and plain-text bodies.
    """
    first_name = _greeting_name(name)
    greeting = f"Hola {first_name}," if first_name else "Hola,"

    subject = f"Bienvenido a {product_name}"
    html = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #111; line-height: 1.5;">
    <h1>Bienvenido a {escape(product_name)}</h1>
    <p>{escape(greeting)}</p>
    <p>Tu suscripción está activa. Creamos tu cuenta con el correo <strong>{escape(email)}</strong>.</p>
    <p>Entrá con este enlace de acceso (válido por tiempo limitado):</p>
    <p><a href="{escape(magic_link, quote=True)}" style="background: #111; color: #fff; padding: 12px 20px; text-decoration: none; border-radius: 6px;">Entrar a {escape(product_name)}</a></p>
    <p style="font-size: 12px; color: #666;">Si el botón no funciona, copiá este enlace en tu navegador:<br>{escape(magic_link)}</p>
  </body>
</html>"""
    text = (
        f"{greeting}\n\n"
        f"Tu suscripción a {product_name} está activa. Creamos tu cuenta con el correo {email}.\n\n"
        f"Entrá con este enlace de acceso (válido por tiempo limitado):\n{magic_link}\n"
    )
    return EmailContent(subject=subject, html=html, text=text)


def welcome_back_email(email: str, name: Optional[str], app_url: str = APP_URL, product_name: str = PRODUCT_NAME) -> EmailContent:
    """Returning subscriber email; they already have an account, so no sign-in link is issued"""
    first_name = _greeting_name(name)
    greeting = f"Hola {first_name}," if first_name else "Hola,"

    subject = f"Bienvenido de vuelta a {product_name}"
    html = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #111; line-height: 1.5;">
    <h1>Qué bueno tenerte de vuelta</h1>
    <p>{escape(greeting)}</p>
    <p>Reactivamos tu suscripción a {escape(product_name)} para <strong>{escape(email)}</strong>.</p>
    <p>Entrá como siempre desde <a href="{escape(app_url, quote=True)}">{escape(app_url)}</a>.</p>
  </body>
</html>"""
    text = (
        f"{greeting}\n\n"
        f"Reactivamos tu suscripción a {product_name} para {email}.\n\n"
        f"Entrá como siempre desde {app_url}\n"
    )
    return EmailContent(subject=subject, html=html, text=text)
