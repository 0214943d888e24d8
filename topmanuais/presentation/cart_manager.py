# topmanuais/presentation/cart_manager.py
# Liga a requisição do Django à sessão de compra (carrinho + checkout) do visitante.

from django.http import HttpRequest

from topmanuais.infrastructure.instances import registro_sessoes
from topmanuais.infrastructure.sessoes import SessaoCompra


def chave_sessao(request: HttpRequest) -> str:
    """Garante que a sessão do Django exista e retorna sua chave."""
    if not request.session.session_key:
        request.session.save()
        # Sem isso o middleware não envia o cookie da sessão recém-criada
        request.session.modified = True
    return request.session.session_key


def obter_sessao_compra(request: HttpRequest) -> SessaoCompra:
    return registro_sessoes.obter(chave_sessao(request))


def obter_sessao_para_nova_etapa(request: HttpRequest) -> SessaoCompra:
    """Usado pelas etapas de edição: após uma compra concluída, começa um checkout novo."""
    return registro_sessoes.iniciar_novo_checkout_se_concluido(chave_sessao(request))
