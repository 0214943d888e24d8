from django.apps import AppConfig


class InfrastructureConfig(AppConfig):
    """Repositórios Django, gateways de pagamento e e-mail, comando de carga do catálogo."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'topmanuais.infrastructure'
    label = 'infrastructure'
    verbose_name = 'Infraestrutura da Loja'
