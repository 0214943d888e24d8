# topmanuais/core/apps.py

from django.apps import AppConfig

class CoreConfig(AppConfig):
    # O nome completo do path da aplicação
    name = 'topmanuais.core'
    # Define o label curto para referência (ex: no shell)
    label = 'core'
    verbose_name = 'Carrinho, Checkout e Pedidos (Core)'

    # A camada core não possui modelos de banco de dados; a Infrastructure cuida disso.
    default_auto_field = 'django.db.models.BigAutoField'
