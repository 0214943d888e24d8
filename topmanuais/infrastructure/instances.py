"""
Módulo de inicialização das instâncias globais.
Deve ser importado somente depois que o Django estiver configurado.
"""
from django.conf import settings

from topmanuais.core.dependency_injection import get_sessao_checkout
from .sessoes import RegistroSessoesCompra

# Registro global das sessões de compra (carrinho + checkout por visitante)
registro_sessoes = RegistroSessoesCompra(
    fabrica_checkout=get_sessao_checkout,
    ttl_segundos=settings.SESSAO_COMPRA_TTL_SEGUNDOS,
)
