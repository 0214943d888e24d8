from django.apps import AppConfig


class PresentationConfig(AppConfig):
    """API REST da loja, admin e template do e-mail de confirmação."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'topmanuais.presentation'
    label = 'presentation'
    verbose_name = 'API da Loja'
