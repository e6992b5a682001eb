# memberhub/notifications/mail.py

import logging

from flask import current_app
from flask_mail import Message

from memberhub import mail

logger = logging.getLogger(__name__)

# Best-effort notifications: without SMTP settings every send is a no-op, and
# delivery failures are logged instead of failing the caller.


class MailService:
    def is_enabled(self):
        config = current_app.config
        return bool(config.get('MAIL_SERVER') and config.get('MAIL_DEFAULT_SENDER'))

    def _send(self, to, subject, body):
        if not self.is_enabled():
            return False
        try:
            mail.send(Message(subject=subject, recipients=[to], body=body))
            return True
        except Exception:
            logger.exception("Mail delivery to %s failed (%s)", to, subject)
            return False

    def send_password_reset_email(self, to, full_name, reset_url):
        body = (
            f"Hola {full_name},\n\n"
            "Recibimos una solicitud para restablecer tu contraseña.\n"
            "Puedes crear una nueva contraseña en el siguiente enlace:\n"
            f"{reset_url}\n\n"
            "Si no solicitaste este cambio, ignora este mensaje.\n\nGracias."
        )
        return self._send(to, 'Restablecimiento de contraseña', body)

    def send_account_status_email(self, to, full_name, dni, is_active, temp_password):
        if is_active:
            status_message = 'Puedes ingresar desde este instante en el sistema con las credenciales brindadas.'
        else:
            status_message = ('Actualiza tus pagos y comunícate con el administrador de padrón de tu capítulo '
                              'para que puedas ingresar al sistema con las credenciales brindadas.')
        body = (
            f"Hola {full_name},\n\n"
            "Tu usuario ha sido creado o actualizado en el sistema.\n"
            f"Usuario: {dni}\n"
            f"Clave temporal: {temp_password}\n\n"
            f"{status_message}\n\n"
            "Por favor, inicia sesión y cambia tu contraseña.\n\nGracias."
        )
        return self._send(to, 'Estado de tu cuenta en el sistema', body)

    def send_account_status_change_email(self, to, full_name, is_active):
        if is_active:
            status_message = 'Tu cuenta se ha activado. Ya puedes ingresar al sistema.'
        else:
            status_message = ('Tu cuenta se ha desactivado por falta de pago. '
                              'Actualiza tu situación y contacta al administrador de padrón.')
        body = (
            f"Hola {full_name},\n\n{status_message}\n\n"
            "Si necesitas ayuda, contacta al administrador de padrón.\n\nGracias."
        )
        return self._send(to, 'Actualización de estado de cuenta', body)
