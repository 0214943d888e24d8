# topmanuais/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases e a sessão de checkout com suas dependências
de Repositórios/Gateways concretos da camada de Infraestrutura, conforme o settings.
"""
from django.conf import settings

from topmanuais.infrastructure.repositories import (
    CatalogoRepositoryDjango,
    PedidoRepositoryDjango,
    LinkDownloadRepositoryDjango,
)
from topmanuais.infrastructure.gateways import (
    GatewayPagamentoSimulado,
    MercadoPagoGateway,
    EmailNotificador,
)
from .carrinho import CarrinhoCompras
from .checkout import SessaoCheckout
from .pedidos import EmissorPedidos
from .use_cases import (
    BuscarItemCatalogoUseCase,
    ListarLinksDoPedidoUseCase,
    ConsumirLinkDownloadUseCase,
    GerenciarPedidosAdminUseCase,
)

# Repositórios Concretos
catalogo_repo = CatalogoRepositoryDjango()
pedido_repo = PedidoRepositoryDjango()
link_repo = LinkDownloadRepositoryDjango()


# ====================================================================
# Gateways
# ====================================================================

def get_gateway_pagamento():
    if settings.PAGAMENTO_GATEWAY == 'mercadopago':
        return MercadoPagoGateway(access_token=settings.MERCADO_PAGO_ACCESS_TOKEN)
    return GatewayPagamentoSimulado(
        aprovar=settings.PAGAMENTO_SIMULADO_APROVAR,
        latencia=settings.PAGAMENTO_SIMULADO_LATENCIA,
    )


def get_notificador() -> EmailNotificador:
    return EmailNotificador()


def get_emissor_pedidos() -> EmissorPedidos:
    return EmissorPedidos(
        pedido_repo=pedido_repo,
        validade_dias=settings.DOWNLOAD_VALIDADE_DIAS,
        limite_downloads=settings.DOWNLOAD_LIMITE,
        prefixo=settings.PEDIDO_PREFIXO,
    )


# ====================================================================
# Sessão de Compra
# ====================================================================

def get_sessao_checkout(carrinho: CarrinhoCompras) -> SessaoCheckout:
    return SessaoCheckout(
        carrinho=carrinho,
        gateway=get_gateway_pagamento(),
        notificador=get_notificador(),
        pedido_repo=pedido_repo,
        emissor=get_emissor_pedidos(),
        timeout_pagamento=settings.PAGAMENTO_TIMEOUT_SEGUNDOS,
        timeout_notificacao=settings.NOTIFICACAO_TIMEOUT_SEGUNDOS,
    )


# ====================================================================
# Use Cases
# ====================================================================

def get_buscar_item_catalogo_use_case() -> BuscarItemCatalogoUseCase:
    return BuscarItemCatalogoUseCase(catalogo_repo)

def get_listar_links_use_case() -> ListarLinksDoPedidoUseCase:
    return ListarLinksDoPedidoUseCase(pedido_repo, link_repo)

def get_consumir_link_use_case() -> ConsumirLinkDownloadUseCase:
    return ConsumirLinkDownloadUseCase(link_repo)

def get_gerenciar_pedidos_admin_use_case() -> GerenciarPedidosAdminUseCase:
    return GerenciarPedidosAdminUseCase(pedido_repo)
