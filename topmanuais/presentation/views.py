import logging

from asgiref.sync import async_to_sync
from django.http import HttpResponseRedirect
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from topmanuais.core.dependency_injection import (
    get_buscar_item_catalogo_use_case,
    get_listar_links_use_case,
    get_consumir_link_use_case,
    get_gerenciar_pedidos_admin_use_case,
)
from topmanuais.core.entities import EtapaCheckout, MetodoPagamento
from topmanuais.core.exceptions import (
    BaseErroCore,
    DadosInvalidosError,
    PrecondicaoError,
    ModificacaoConcorrenteError,
    TransicaoInvalidaError,
    PagamentoFalhouError,
    LinkDownloadError,
    ItemNaoEncontradoError,
)

from .cart_manager import obter_sessao_compra, obter_sessao_para_nova_etapa
from .serializers import (
    CarrinhoSerializer,
    AdicionarItemSerializer,
    AtualizarQuantidadeSerializer,
    DadosClienteSerializer,
    MetodoPagamentoSerializer,
    SessaoCheckoutSerializer,
    PedidoSerializer,
    LinkDownloadSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# VIEWS: Orquestram a requisição, a execução dos casos de uso e a resposta.
# ====================================================================

# Ordem importa: subclasses antes das classes base
_STATUS_POR_ERRO = (
    (DadosInvalidosError, status.HTTP_400_BAD_REQUEST),
    (PrecondicaoError, status.HTTP_409_CONFLICT),
    (ModificacaoConcorrenteError, status.HTTP_409_CONFLICT),
    (TransicaoInvalidaError, status.HTTP_409_CONFLICT),
    (PagamentoFalhouError, status.HTTP_402_PAYMENT_REQUIRED),
    (LinkDownloadError, status.HTTP_410_GONE),
    (ItemNaoEncontradoError, status.HTTP_404_NOT_FOUND),
)


def resposta_erro(erro: BaseErroCore) -> Response:
    """Converte um erro do core na resposta HTTP correspondente."""
    codigo = next(
        (codigo for tipo, codigo in _STATUS_POR_ERRO if isinstance(erro, tipo)),
        status.HTTP_400_BAD_REQUEST,
    )
    corpo = {'erro': erro.message}
    if isinstance(erro, DadosInvalidosError) and erro.campos:
        corpo['campos'] = erro.campos
    return Response(corpo, status=codigo)


def _estado_checkout(sessao):
    return SessaoCheckoutSerializer(sessao.checkout).data


# ====================================================================
# 1. CARRINHO
# ====================================================================

class CarrinhoAPIView(APIView):
    """Visualiza, adiciona itens e esvazia o carrinho da sessão."""

    def get(self, request):
        sessao = obter_sessao_compra(request)
        return Response(CarrinhoSerializer(sessao.carrinho.snapshot()).data)

    def post(self, request):
        serializer = AdicionarItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = obter_sessao_compra(request)

        try:
            item = get_buscar_item_catalogo_use_case().executar(serializer.validated_data['item_id'])
            adicionado = sessao.carrinho.adicionar(item)
        except BaseErroCore as e:
            return resposta_erro(e)

        dados = CarrinhoSerializer(sessao.carrinho.snapshot()).data
        if not adicionado:
            return Response({'mensagem': 'Este manual já está no carrinho', 'carrinho': dados},
                            status=status.HTTP_200_OK)
        return Response({'mensagem': f'{item.titulo} adicionado ao carrinho!', 'carrinho': dados},
                        status=status.HTTP_201_CREATED)

    def delete(self, request):
        sessao = obter_sessao_compra(request)
        try:
            sessao.carrinho.limpar()
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(CarrinhoSerializer(sessao.carrinho.snapshot()).data)


class ItemCarrinhoAPIView(APIView):
    """Altera a quantidade ou remove um item do carrinho."""

    def patch(self, request, item_id):
        serializer = AtualizarQuantidadeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = obter_sessao_compra(request)
        try:
            sessao.carrinho.definir_quantidade(item_id, serializer.validated_data['quantidade'])
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(CarrinhoSerializer(sessao.carrinho.snapshot()).data)

    def delete(self, request, item_id):
        sessao = obter_sessao_compra(request)
        try:
            sessao.carrinho.remover(item_id)
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(CarrinhoSerializer(sessao.carrinho.snapshot()).data)


# ====================================================================
# 2. CHECKOUT
# ====================================================================

class CheckoutAPIView(APIView):
    """Estado atual do checkout da sessão."""

    def get(self, request):
        return Response(_estado_checkout(obter_sessao_compra(request)))


class CheckoutClienteAPIView(APIView):
    """Etapa 1: dados pessoais."""

    def post(self, request):
        serializer = DadosClienteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = obter_sessao_para_nova_etapa(request)
        try:
            sessao.checkout.atualizar_cliente(**serializer.validated_data)
            sessao.checkout.confirmar_dados_cliente()
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(_estado_checkout(sessao))


class CheckoutPagamentoAPIView(APIView):
    """Etapa 2: forma de pagamento."""

    def post(self, request):
        serializer = MetodoPagamentoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sessao = obter_sessao_para_nova_etapa(request)
        try:
            sessao.checkout.selecionar_metodo_pagamento(serializer.validated_data['metodo_pagamento'])
            sessao.checkout.confirmar_pagamento()
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(_estado_checkout(sessao))


class CheckoutVoltarAPIView(APIView):

    def post(self, request):
        sessao = obter_sessao_compra(request)
        try:
            sessao.checkout.voltar()
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(_estado_checkout(sessao))


class CheckoutCancelarAPIView(APIView):
    """Cancela o checkout. Se o pagamento estiver em andamento, aguarda o resultado."""

    def post(self, request):
        sessao = obter_sessao_compra(request)
        cancelado = async_to_sync(sessao.checkout.cancelar)()
        dados = _estado_checkout(sessao)
        dados['cancelado'] = cancelado
        return Response(dados)


class CheckoutConfirmarAPIView(APIView):
    """
    Etapa final: autoriza o pagamento e cria o pedido.
    O carrinho só é esvaziado depois que o pedido foi criado.
    """

    def post(self, request):
        sessao = obter_sessao_compra(request)
        ja_concluido = sessao.checkout.etapa == EtapaCheckout.CONCLUIDO
        try:
            resultado = async_to_sync(sessao.checkout.processar_checkout)()
        except BaseErroCore as e:
            return resposta_erro(e)

        if ja_concluido:
            codigo = status.HTTP_200_OK
        else:
            sessao.carrinho.limpar()
            codigo = status.HTTP_201_CREATED

        return Response({
            'pedido': PedidoSerializer(resultado.pedido).data,
            'avisos': resultado.avisos,
        }, status=codigo)


class MetodosPagamentoAPIView(APIView):

    def get(self, request):
        return Response([{'id': m.value, 'nome': m.rotulo} for m in MetodoPagamento])


# ====================================================================
# 3. PÁGINA DE DOWNLOAD
# ====================================================================

class PedidoDownloadsAPIView(APIView):
    """Links do pedido com prazo e contagem de downloads."""

    def get(self, request, pedido_id):
        try:
            links = get_listar_links_use_case().executar(str(pedido_id))
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(LinkDownloadSerializer(links, many=True).data)


class DownloadAPIView(APIView):
    """Consome o link e redireciona para o arquivo."""

    def get(self, request, link_id):
        try:
            destino = get_consumir_link_use_case().executar(str(link_id))
        except LinkDownloadError as e:
            return Response(
                {'erro': e.message, 'detalhe': 'Entre em contato com o suporte.'},
                status=status.HTTP_410_GONE,
            )
        except BaseErroCore as e:
            return resposta_erro(e)
        return HttpResponseRedirect(destino.referencia)


# ====================================================================
# 4. ADMINISTRAÇÃO DE PEDIDOS
# ====================================================================

class AdminPedidosAPIView(APIView):
    """Lista pedidos com busca por número, nome ou e-mail do cliente."""
    permission_classes = [IsAdminUser]

    def get(self, request):
        pedidos = get_gerenciar_pedidos_admin_use_case().listar(request.query_params.get('busca'))
        return Response(PedidoSerializer(pedidos, many=True).data)


class AdminPedidoDetalheAPIView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, pedido_id):
        try:
            pedido = get_gerenciar_pedidos_admin_use_case().detalhar(str(pedido_id))
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(PedidoSerializer(pedido).data)


class AdminPedidoPorNumeroAPIView(APIView):
    """Consulta o pedido pelo número que o cliente recebeu no e-mail."""
    permission_classes = [IsAdminUser]

    def get(self, request, numero_pedido):
        try:
            pedido = get_gerenciar_pedidos_admin_use_case().detalhar_por_numero(numero_pedido)
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response(PedidoSerializer(pedido).data)
