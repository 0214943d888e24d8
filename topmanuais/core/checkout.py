# topmanuais/core/checkout.py
"""
Sessão de checkout: máquina de estados que coleta os dados do comprador e a forma
de pagamento e conduz a criação do pedido.

    COLETANDO_CLIENTE -> COLETANDO_PAGAMENTO -> REVISANDO -> ENVIANDO -> CONCLUIDO
                                                   ^             |
                                                   +-- recusa ---+

Só existe uma tentativa de finalização em andamento por sessão. Enquanto ela
acontece, qualquer alteração (cliente, pagamento ou carrinho) é rejeitada.

Se o pagamento for aprovado e a gravação do pedido falhar, a próxima tentativa
grava o pedido com os dados já pagos, sem autorizar o pagamento de novo.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import List, Optional

from asgiref.sync import sync_to_async

from topmanuais.core.carrinho import CarrinhoCompras
from topmanuais.core.entities import (
    Carrinho, DadosCliente, EtapaCheckout, ItemPedido, MensagemConfirmacao,
    MetodoPagamento, Pedido, ResultadoCheckout, AutorizacaoPagamento
)
from topmanuais.core.exceptions import (
    CarrinhoVazioError, DadosInvalidosError, ModificacaoConcorrenteError,
    NotificacaoFalhouError, PagamentoFalhouError, TransicaoInvalidaError
)
from topmanuais.core.pedidos import EmissorPedidos
from topmanuais.core.ports import IGatewayPagamento, INotificadorPedido, IPedidoRepository

logger = logging.getLogger(__name__)

_ETAPA_ANTERIOR = {
    EtapaCheckout.COLETANDO_CLIENTE: EtapaCheckout.COLETANDO_CLIENTE,
    EtapaCheckout.COLETANDO_PAGAMENTO: EtapaCheckout.COLETANDO_CLIENTE,
    EtapaCheckout.REVISANDO: EtapaCheckout.COLETANDO_PAGAMENTO,
}


@dataclass(frozen=True)
class _PagamentoAprovado:
    autorizacao: AutorizacaoPagamento
    cliente: DadosCliente
    metodo: MetodoPagamento
    snapshot: Carrinho


class SessaoCheckout:
    """Checkout de uma única sessão de compra."""

    def __init__(
        self,
        carrinho: CarrinhoCompras,
        gateway: IGatewayPagamento,
        notificador: INotificadorPedido,
        pedido_repo: IPedidoRepository,
        emissor: EmissorPedidos,
        timeout_pagamento: Optional[float] = 30.0,
        timeout_notificacao: Optional[float] = 10.0,
    ):
        self.carrinho = carrinho
        self.gateway = gateway
        self.notificador = notificador
        self.pedido_repo = pedido_repo
        self.emissor = emissor
        self.timeout_pagamento = timeout_pagamento
        self.timeout_notificacao = timeout_notificacao

        self._cliente = DadosCliente()
        self._metodo: Optional[MetodoPagamento] = None
        self._etapa = EtapaCheckout.COLETANDO_CLIENTE
        self._processando = False
        self._resultado: Optional[ResultadoCheckout] = None
        # Pagamento aprovado cujo pedido ainda não foi gravado; reaproveitado na nova tentativa
        self._pagamento_aprovado: Optional[_PagamentoAprovado] = None

        self._lock = threading.Lock()
        # Sinaliza o fim da finalização em andamento (livre quando "set")
        self._finalizado = threading.Event()
        self._finalizado.set()

        self.carrinho.observar(self._ao_alterar_carrinho)

    # ====================================================================
    # ESTADO
    # ====================================================================

    @property
    def etapa(self) -> EtapaCheckout:
        return self._etapa

    @property
    def processando(self) -> bool:
        return self._processando

    @property
    def cliente(self) -> DadosCliente:
        return replace(self._cliente)

    @property
    def metodo_pagamento(self) -> Optional[MetodoPagamento]:
        return self._metodo

    @property
    def resultado(self) -> Optional[ResultadoCheckout]:
        return self._resultado

    @property
    def pedido(self) -> Optional[Pedido]:
        return self._resultado.pedido if self._resultado else None

    # ====================================================================
    # ETAPAS DO FLUXO
    # ====================================================================

    def atualizar_cliente(self, **campos) -> DadosCliente:
        """Mescla dados parciais do cliente (nome, email, telefone, cpf)."""
        desconhecidos = set(campos) - {'nome', 'email', 'telefone', 'cpf'}
        if desconhecidos:
            raise DadosInvalidosError("Campos de cliente desconhecidos.", campos=sorted(desconhecidos))
        with self._lock:
            self._verificar_editavel()
            valores = {k: v for k, v in campos.items() if v is not None}
            self._cliente = replace(self._cliente, **valores)
            return replace(self._cliente)

    def confirmar_dados_cliente(self) -> EtapaCheckout:
        with self._lock:
            self._verificar_editavel()
            campos = self._cliente.campos_invalidos()
            if campos:
                self._etapa = EtapaCheckout.COLETANDO_CLIENTE
                raise DadosInvalidosError(
                    f"Preencha seus dados pessoais: {', '.join(campos)}.", campos=campos
                )
            self._etapa = EtapaCheckout.COLETANDO_PAGAMENTO
            logger.info("Checkout: dados do cliente confirmados.")
            return self._etapa

    def selecionar_metodo_pagamento(self, metodo) -> MetodoPagamento:
        metodo = MetodoPagamento.parse(metodo)
        with self._lock:
            self._verificar_editavel()
            self._metodo = metodo
            return metodo

    def confirmar_pagamento(self) -> EtapaCheckout:
        with self._lock:
            self._verificar_editavel()
            if self._etapa == EtapaCheckout.COLETANDO_CLIENTE:
                raise TransicaoInvalidaError("Confirme seus dados pessoais antes da forma de pagamento.")
            if self._metodo is None:
                self._etapa = EtapaCheckout.COLETANDO_PAGAMENTO
                raise DadosInvalidosError("Selecione uma forma de pagamento.", campos=['metodo_pagamento'])
            self._etapa = EtapaCheckout.REVISANDO
            logger.info("Checkout: forma de pagamento %s selecionada.", self._metodo.value)
            return self._etapa

    def voltar(self) -> EtapaCheckout:
        with self._lock:
            self._verificar_editavel()
            self._etapa = _ETAPA_ANTERIOR[self._etapa]
            return self._etapa

    async def cancelar(self) -> bool:
        """
        Reinicia a sessão. Se houver uma finalização em andamento, espera o resultado
        antes de decidir. Retorna False quando a compra já foi concluída.
        """
        while True:
            with self._lock:
                if self._etapa == EtapaCheckout.CONCLUIDO:
                    return False
                if not self._processando:
                    self._resetar()
                    logger.info("Checkout cancelado e reiniciado.")
                    return True
            await sync_to_async(self._finalizado.wait, thread_sensitive=False)()

    def desanexar(self) -> None:
        """Deixa de acompanhar o carrinho (sessão substituída)."""
        self.carrinho.remover_observador(self._ao_alterar_carrinho)

    # ====================================================================
    # FINALIZAÇÃO
    # ====================================================================

    async def processar_checkout(self, timeout: Optional[float] = None) -> ResultadoCheckout:
        """
        Autoriza o pagamento e cria o pedido.

        Chamadas após a conclusão devolvem o mesmo resultado, sem criar outro pedido.
        """
        with self._lock:
            # Enquanto a confirmação é enviada a compra já está concluída, mas ainda em andamento
            if self._processando:
                raise ModificacaoConcorrenteError()
            if self._etapa == EtapaCheckout.CONCLUIDO and self._resultado is not None:
                return self._resultado
            campos = self._cliente.campos_invalidos()
            if campos:
                self._etapa = EtapaCheckout.COLETANDO_CLIENTE
                raise DadosInvalidosError(
                    f"Preencha seus dados pessoais: {', '.join(campos)}.", campos=campos
                )
            if self._metodo is None:
                self._etapa = EtapaCheckout.COLETANDO_PAGAMENTO
                raise DadosInvalidosError("Selecione uma forma de pagamento.", campos=['metodo_pagamento'])
            if self._etapa != EtapaCheckout.REVISANDO:
                raise TransicaoInvalidaError("Revise o pedido antes de finalizar a compra.")

            aprovado = self._pagamento_aprovado
            self.carrinho.travar()
            if aprovado is None:
                snapshot = self.carrinho.snapshot()
                if snapshot.vazio:
                    self.carrinho.destravar()
                    raise CarrinhoVazioError("Não é possível finalizar a compra com o carrinho vazio.")

            self._processando = True
            self._etapa = EtapaCheckout.ENVIANDO
            self._finalizado.clear()
            cliente = replace(self._cliente)
            metodo = self._metodo

        try:
            if aprovado is None:
                autorizacao = await self._autorizar(metodo, snapshot.total, timeout)
                if not autorizacao.aprovado:
                    logger.warning("Pagamento recusado (%s, R$ %s).", metodo.value, snapshot.total)
                    raise PagamentoFalhouError("Pagamento recusado. Tente novamente ou escolha outra forma de pagamento.")
                aprovado = _PagamentoAprovado(autorizacao, cliente, metodo, snapshot)
                with self._lock:
                    self._pagamento_aprovado = aprovado
            else:
                logger.info("Nova tentativa de gravar o pedido do pagamento aprovado %s.",
                            aprovado.autorizacao.referencia)

            try:
                pedido = await sync_to_async(self._registrar_pedido)(
                    aprovado.cliente, aprovado.metodo, aprovado.snapshot, aprovado.autorizacao
                )
            except Exception:
                logger.error("Pagamento %s aprovado (R$ %s), mas o pedido não foi gravado.",
                             aprovado.autorizacao.referencia, aprovado.snapshot.total)
                raise

            with self._lock:
                self._pagamento_aprovado = None
                self._resultado = ResultadoCheckout(pedido=pedido)
                self._etapa = EtapaCheckout.CONCLUIDO
            logger.info("Pedido %s criado (total R$ %s).", pedido.numero_pedido, pedido.total)

            self._resultado.avisos.extend(await self._enviar_confirmacao(pedido))
            return self._resultado
        except PagamentoFalhouError:
            with self._lock:
                self._etapa = EtapaCheckout.REVISANDO
            raise
        except Exception:
            logger.exception("Falha ao registrar o pedido após a autorização do pagamento.")
            with self._lock:
                if self._etapa != EtapaCheckout.CONCLUIDO:
                    self._etapa = EtapaCheckout.REVISANDO
            raise
        finally:
            with self._lock:
                self._processando = False
            self.carrinho.destravar()
            self._finalizado.set()

    async def _autorizar(self, metodo: MetodoPagamento, total: Decimal, timeout: Optional[float]) -> AutorizacaoPagamento:
        limite = timeout if timeout is not None else self.timeout_pagamento
        try:
            return await asyncio.wait_for(self.gateway.autorizar(metodo, total), timeout=limite)
        except asyncio.TimeoutError:
            logger.warning("Pagamento sem resposta após %s segundos.", limite)
            raise PagamentoFalhouError("O pagamento não respondeu a tempo. Tente novamente.")
        except PagamentoFalhouError:
            raise
        except Exception as e:
            logger.exception("Erro inesperado no gateway de pagamento.")
            raise PagamentoFalhouError(f"Falha na comunicação com o pagamento: {e}")

    def _registrar_pedido(
        self,
        cliente: DadosCliente,
        metodo: MetodoPagamento,
        snapshot: Carrinho,
        autorizacao: AutorizacaoPagamento,
    ) -> Pedido:
        itens = [
            ItemPedido(
                item_id=entrada.item.id,
                titulo=entrada.item.titulo,
                preco_unitario=entrada.item.preco_unitario,
                quantidade=entrada.quantidade,
                referencia_download=entrada.item.referencia_download,
            )
            for entrada in snapshot.itens
        ]
        pedido = self.emissor.criar_pedido(
            cliente, metodo, itens,
            numero_pedido=self.emissor.gerar_numero_pedido(),
            referencia_pagamento=autorizacao.referencia,
        )
        links = self.emissor.emitir_links(pedido, agora=pedido.criado_em)
        return self.pedido_repo.salvar(replace(pedido, links_download=tuple(links)))

    async def _enviar_confirmacao(self, pedido: Pedido) -> List[str]:
        """Envia a confirmação uma única vez. Falhas viram avisos, o pedido permanece."""
        mensagem = MensagemConfirmacao.do_pedido(pedido)
        aviso = NotificacaoFalhouError().message
        try:
            enviado = await asyncio.wait_for(
                self.notificador.enviar_confirmacao_pedido(mensagem), timeout=self.timeout_notificacao
            )
        except asyncio.TimeoutError:
            logger.error("Confirmação do pedido %s não enviada: tempo esgotado.", pedido.numero_pedido)
            return [aviso]
        except Exception:
            logger.exception("Confirmação do pedido %s não enviada.", pedido.numero_pedido)
            return [aviso]
        if not enviado:
            logger.error("Confirmação do pedido %s recusada pelo serviço de envio.", pedido.numero_pedido)
            return [aviso]
        return []

    # ====================================================================
    # AUXILIARES
    # ====================================================================

    def _verificar_editavel(self):
        if self._processando:
            raise ModificacaoConcorrenteError()
        if self._etapa == EtapaCheckout.CONCLUIDO:
            raise TransicaoInvalidaError("Esta compra já foi concluída.")

    def _resetar(self):
        if self._pagamento_aprovado is not None:
            logger.error("Checkout reiniciado com o pagamento aprovado %s sem pedido gravado (R$ %s).",
                         self._pagamento_aprovado.autorizacao.referencia,
                         self._pagamento_aprovado.snapshot.total)
            self._pagamento_aprovado = None
        self._cliente = DadosCliente()
        self._metodo = None
        self._etapa = EtapaCheckout.COLETANDO_CLIENTE

    def _ao_alterar_carrinho(self, snapshot: Carrinho):
        if not snapshot.vazio:
            return
        with self._lock:
            if self._processando or self._etapa == EtapaCheckout.CONCLUIDO:
                return
            self._resetar()
        logger.info("Carrinho vazio: checkout reiniciado.")
