from django.apps import AppConfig

class VendasConfig(AppConfig):
    # Caminho Python completo do módulo
    name = 'topmanuais.vendas'

    # Rótulo curto usado em apps.get_model('vendas', ...)
    label = 'vendas'

    verbose_name = 'Vendas e Links de Download'

    default_auto_field = 'django.db.models.BigAutoField'
