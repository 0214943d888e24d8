# topmanuais/core/testes.py

import asyncio
import random
import threading
import unittest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, AsyncMock

# Importamos as classes que queremos testar
from topmanuais.core.carrinho import CarrinhoCompras
from topmanuais.core.checkout import SessaoCheckout
from topmanuais.core.pedidos import EmissorPedidos
from topmanuais.core.use_cases import (
    BuscarItemCatalogoUseCase, ListarLinksDoPedidoUseCase, ConsumirLinkDownloadUseCase,
    GerenciarPedidosAdminUseCase,
)
from topmanuais.core.entities import (
    ItemCatalogo, ItemPedido, DadosCliente, MetodoPagamento, EtapaCheckout,
    AutorizacaoPagamento, StatusPagamento, agora_utc
)
from topmanuais.core.exceptions import (
    CarrinhoVazioError, DadosInvalidosError, ModificacaoConcorrenteError, PagamentoFalhouError,
    PrecondicaoError, TransicaoInvalidaError, LinkExpiradoError, LinkEsgotadoError,
    ItemNaoEncontradoError, PedidoNaoEncontradoError,
)
from topmanuais.infrastructure.memoria import (
    CatalogoMemoria, PedidoRepositoryMemoria, LinkDownloadRepositoryMemoria
)

MANUAL_EXEMPLO = ItemCatalogo(
    id='manual-de-exemplo', titulo='Manual de Exemplo',
    preco_unitario=Decimal('139.90'), referencia_download='https://topmanuais.com/download/manual-de-exemplo'
)
MANUAL_CG160 = ItemCatalogo(
    id='manual-cg-160', titulo='Manual de Serviço Honda CG 160',
    preco_unitario=Decimal('89.90'), referencia_download='https://topmanuais.com/download/manual-cg-160'
)


class GatewayControlado:
    """Processador que só responde quando o teste libera."""
    def __init__(self, aprovar=True):
        self.aprovar = aprovar
        self.liberar = asyncio.Event()
        self.chamadas = 0

    async def autorizar(self, metodo, valor):
        self.chamadas += 1
        await self.liberar.wait()
        return AutorizacaoPagamento(aprovado=self.aprovar, referencia='PAY-CTRL')


# ====================================================================
# CARRINHO
# ====================================================================

class TestCarrinhoCompras(unittest.TestCase):

    def setUp(self):
        self.carrinho = CarrinhoCompras()

    def test_adicionar_mesmo_item_varias_vezes_mantem_uma_entrada(self):
        """
        Cenário: O comprador clica em "comprar" várias vezes no mesmo manual.
        """
        # ACT
        resultados = [self.carrinho.adicionar(MANUAL_EXEMPLO) for _ in range(4)]

        # ASSERT
        self.assertEqual(resultados, [True, False, False, False])
        snapshot = self.carrinho.snapshot()
        self.assertEqual(len(snapshot.itens), 1)
        self.assertEqual(snapshot.itens[0].quantidade, 1)

    def test_definir_quantidade_menor_que_um_remove(self):
        """
        Cenário: Quantidade 0 ou negativa equivale a remover o item.
        """
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.carrinho.adicionar(MANUAL_CG160)

        self.carrinho.definir_quantidade(MANUAL_EXEMPLO.id, 0)
        self.carrinho.definir_quantidade(MANUAL_CG160.id, -5)

        self.assertFalse(self.carrinho.contem(MANUAL_EXEMPLO.id))
        self.assertFalse(self.carrinho.contem(MANUAL_CG160.id))
        self.assertTrue(self.carrinho.snapshot().vazio)

    def test_definir_quantidade_preserva_ordem_de_insercao(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.carrinho.adicionar(MANUAL_CG160)

        self.carrinho.definir_quantidade(MANUAL_EXEMPLO.id, 3)

        snapshot = self.carrinho.snapshot()
        self.assertEqual([i.item.id for i in snapshot.itens], [MANUAL_EXEMPLO.id, MANUAL_CG160.id])
        self.assertEqual(snapshot.quantidade_itens, 4)
        self.assertEqual(snapshot.total, Decimal('509.60'))

    def test_remover_item_ausente_nao_faz_nada(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.carrinho.remover('nao-existe')
        self.assertEqual(len(self.carrinho.snapshot().itens), 1)

    def test_total_igual_a_soma_dos_itens_em_carrinhos_aleatorios(self):
        """
        Cenário: Para qualquer combinação de itens e quantidades o total confere.
        """
        gerador = random.Random(42)
        for _ in range(50):
            carrinho = CarrinhoCompras()
            esperado = Decimal('0')
            for n in range(gerador.randint(0, 8)):
                preco = Decimal(gerador.randint(0, 50000)) / 100
                quantidade = gerador.randint(1, 6)
                item = ItemCatalogo(id=f'item-{n}', titulo=f'Manual {n}', preco_unitario=preco)
                carrinho.adicionar(item)
                carrinho.definir_quantidade(item.id, quantidade)
                esperado += preco * quantidade
            self.assertEqual(carrinho.snapshot().total, esperado.quantize(Decimal('0.01')))

    def test_snapshot_nao_muda_com_alteracoes_posteriores(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        antes = self.carrinho.snapshot()

        self.carrinho.definir_quantidade(MANUAL_EXEMPLO.id, 2)

        self.assertEqual(antes.total, Decimal('139.90'))
        self.assertEqual(self.carrinho.snapshot().total, Decimal('279.80'))

    def test_carrinho_travado_rejeita_alteracoes(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.carrinho.travar()

        with self.assertRaises(ModificacaoConcorrenteError):
            self.carrinho.adicionar(MANUAL_CG160)
        with self.assertRaises(ModificacaoConcorrenteError):
            self.carrinho.limpar()

        self.carrinho.destravar()
        self.carrinho.limpar()
        self.assertTrue(self.carrinho.snapshot().vazio)

    def test_observador_recebe_snapshot_apos_mutacao(self):
        observador = Mock()
        self.carrinho.observar(observador)

        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.carrinho.adicionar(MANUAL_EXEMPLO)  # duplicado não notifica

        observador.assert_called_once()
        self.assertEqual(observador.call_args[0][0].quantidade_itens, 1)


# ====================================================================
# EMISSOR DE PEDIDOS E LINKS
# ====================================================================

class TestEmissorPedidos(unittest.TestCase):

    def setUp(self):
        self.pedido_repo_mock = Mock()
        self.pedido_repo_mock.numero_existe.return_value = False
        self.emissor = EmissorPedidos(pedido_repo=self.pedido_repo_mock)
        self.cliente = DadosCliente(nome='Ana', email='ana@x.com')
        self.itens = [
            ItemPedido(item_id='a', titulo='Manual A', preco_unitario=Decimal('10.10'), quantidade=3,
                       referencia_download='https://arquivos/a.pdf'),
            ItemPedido(item_id='b', titulo='Manual B', preco_unitario=Decimal('5.00'), quantidade=1,
                       referencia_download='https://arquivos/b.pdf'),
        ]

    def test_criar_pedido_recalcula_total(self):
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)

        self.assertEqual(pedido.total, Decimal('35.30'))
        self.assertEqual(pedido.status_pagamento, StatusPagamento.APROVADO)
        self.assertRegex(pedido.numero_pedido, r'^TM-\d{4}-\d{6}$')

    def test_criar_pedido_sem_itens_falha(self):
        with self.assertRaises(CarrinhoVazioError):
            self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, [])

    def test_numero_pedido_repetido_gera_outro(self):
        """
        Cenário: O primeiro número sorteado já existe no repositório.
        """
        self.pedido_repo_mock.numero_existe.side_effect = [True, False]

        numero = self.emissor.gerar_numero_pedido()

        self.assertEqual(self.pedido_repo_mock.numero_existe.call_count, 2)
        self.assertTrue(numero.startswith('TM-'))

    def test_emitir_links_um_por_item(self):
        agora = agora_utc()
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.BOLETO, self.itens)

        links = self.emissor.emitir_links(pedido, agora=agora)

        # Quantidade 3 continua gerando um único link
        self.assertEqual(len(links), 2)
        for link in links:
            self.assertEqual(link.pedido_id, pedido.id)
            self.assertEqual(link.quantidade_downloads, 0)
            self.assertEqual(link.limite_downloads, 5)
            self.assertEqual(link.expira_em - link.emitido_em, timedelta(days=30))
        self.assertEqual(links[0].referencia_destino, 'https://arquivos/a.pdf')

    def test_link_permite_exatamente_cinco_downloads(self):
        """
        Cenário: O sexto download falha com limite esgotado.
        """
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)
        link = self.emissor.emitir_links(pedido)[0]

        for restante in range(4, -1, -1):
            destino = self.emissor.consumir(link)
            self.assertEqual(destino.downloads_restantes, restante)
            self.assertEqual(destino.referencia, 'https://arquivos/a.pdf')

        with self.assertRaises(LinkEsgotadoError):
            self.emissor.consumir(link)
        self.assertEqual(link.quantidade_downloads, 5)

    def test_link_expirado_falha_mesmo_com_downloads_restantes(self):
        agora = agora_utc()
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)
        link = self.emissor.emitir_links(pedido, agora=agora - timedelta(days=30))[0]

        with self.assertRaises(LinkExpiradoError):
            self.emissor.consumir(link, agora=agora)
        self.assertEqual(link.quantidade_downloads, 0)

    def test_consumo_simultaneo_da_ultima_vaga(self):
        """
        Cenário: Dois cliques ao mesmo tempo com apenas um download restante.
        """
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)
        link = self.emissor.emitir_links(pedido)[0]
        link.quantidade_downloads = link.limite_downloads - 1

        barreira = threading.Barrier(2)
        sucessos, falhas = [], []

        def baixar():
            barreira.wait()
            try:
                sucessos.append(self.emissor.consumir(link))
            except LinkEsgotadoError as e:
                falhas.append(e)

        threads = [threading.Thread(target=baixar) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(sucessos), 1)
        self.assertEqual(len(falhas), 1)
        self.assertEqual(link.quantidade_downloads, link.limite_downloads)

    def test_criar_pedido_nao_consulta_o_repositorio(self):
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens,
                                           numero_pedido='TM-2024-000001')

        self.assertEqual(pedido.numero_pedido, 'TM-2024-000001')
        self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)
        self.pedido_repo_mock.numero_existe.assert_not_called()
        self.pedido_repo_mock.salvar.assert_not_called()

    def test_travas_dos_links_sao_liberadas_apos_o_consumo(self):
        pedido = self.emissor.criar_pedido(self.cliente, MetodoPagamento.PIX, self.itens)
        links = self.emissor.emitir_links(pedido)
        links[1].quantidade_downloads = links[1].limite_downloads

        self.emissor.consumir(links[0])
        with self.assertRaises(LinkEsgotadoError):
            self.emissor.consumir(links[1])

        self.assertEqual(self.emissor._locks, {})


# ====================================================================
# SESSÃO DE CHECKOUT
# ====================================================================

class TestSessaoCheckout(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.link_repo = LinkDownloadRepositoryMemoria()
        self.pedido_repo = PedidoRepositoryMemoria(link_repo=self.link_repo)
        self.emissor = EmissorPedidos(pedido_repo=self.pedido_repo)
        self.carrinho = CarrinhoCompras()

        self.gateway_mock = Mock()
        self.gateway_mock.autorizar = AsyncMock(return_value=AutorizacaoPagamento(aprovado=True, referencia='PAY-1'))
        self.notificador_mock = Mock()
        self.notificador_mock.enviar_confirmacao_pedido = AsyncMock(return_value=True)

        self.sessao = self._nova_sessao(self.gateway_mock)

    def _nova_sessao(self, gateway):
        return SessaoCheckout(
            carrinho=self.carrinho,
            gateway=gateway,
            notificador=self.notificador_mock,
            pedido_repo=self.pedido_repo,
            emissor=self.emissor,
            timeout_pagamento=2.0,
            timeout_notificacao=2.0,
        )

    def _preencher(self, sessao=None):
        sessao = sessao or self.sessao
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        sessao.atualizar_cliente(nome='Ana', email='ana@x.com')
        sessao.confirmar_dados_cliente()
        sessao.selecionar_metodo_pagamento(MetodoPagamento.PIX)
        sessao.confirmar_pagamento()

    async def _aguardar_processamento(self, sessao):
        for _ in range(100):
            if sessao.processando:
                return
            await asyncio.sleep(0)
        self.fail("A finalização não começou.")

    async def test_caminho_feliz(self):
        """
        Cenário: Um manual de 139,90 pago com PIX e aprovado.
        """
        # ARRANGE
        self._preencher()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)

        # ACT
        resultado = await self.sessao.processar_checkout()

        # ASSERT
        pedido = resultado.pedido
        self.assertEqual(pedido.total, Decimal('139.90'))
        self.assertEqual(pedido.metodo_pagamento, MetodoPagamento.PIX)
        self.assertEqual(pedido.referencia_pagamento, 'PAY-1')
        self.assertEqual(len(pedido.links_download), 1)
        link = pedido.links_download[0]
        self.assertEqual(link.limite_downloads, 5)
        self.assertEqual(link.quantidade_downloads, 0)
        self.assertEqual(link.expira_em - link.emitido_em, timedelta(days=30))
        self.assertEqual(resultado.avisos, [])
        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)
        self.assertFalse(self.sessao.processando)

        # O pagamento recebe o total recalculado
        self.gateway_mock.autorizar.assert_awaited_once_with(MetodoPagamento.PIX, Decimal('139.90'))
        self.notificador_mock.enviar_confirmacao_pedido.assert_awaited_once()
        mensagem = self.notificador_mock.enviar_confirmacao_pedido.call_args[0][0]
        self.assertEqual(mensagem.numero_pedido, pedido.numero_pedido)
        self.assertEqual(mensagem.email_cliente, 'ana@x.com')
        self.assertEqual(mensagem.itens, (('Manual de Exemplo', MANUAL_EXEMPLO.referencia_download),))

        # O pedido e seus links foram gravados
        self.assertIsNotNone(self.pedido_repo.buscar_por_id(pedido.id))
        self.assertEqual(len(self.link_repo.listar_por_pedido(pedido.id)), 1)

        # O carrinho só é esvaziado por quem chamou
        self.assertFalse(self.carrinho.snapshot().vazio)

    async def test_nova_chamada_apos_conclusao_retorna_mesmo_pedido(self):
        self._preencher()

        primeiro = await self.sessao.processar_checkout()
        segundo = await self.sessao.processar_checkout()

        self.assertIs(primeiro.pedido, segundo.pedido)
        self.assertEqual(len(self.pedido_repo.listar()), 1)
        self.gateway_mock.autorizar.assert_awaited_once()
        self.notificador_mock.enviar_confirmacao_pedido.assert_awaited_once()

    async def test_segunda_finalizacao_em_andamento_e_rejeitada(self):
        """
        Cenário: Duplo clique em "finalizar" enquanto o pagamento está pendente.
        """
        gateway = GatewayControlado()
        sessao = self._nova_sessao(gateway)
        self._preencher(sessao)

        tarefa = asyncio.create_task(sessao.processar_checkout())
        await self._aguardar_processamento(sessao)

        with self.assertRaises(ModificacaoConcorrenteError):
            await sessao.processar_checkout()

        gateway.liberar.set()
        resultado = await tarefa

        self.assertEqual(gateway.chamadas, 1)
        self.assertEqual(self.pedido_repo.listar(), [resultado.pedido])

    async def test_alteracoes_durante_processamento_sao_rejeitadas(self):
        gateway = GatewayControlado()
        sessao = self._nova_sessao(gateway)
        self._preencher(sessao)

        tarefa = asyncio.create_task(sessao.processar_checkout())
        await self._aguardar_processamento(sessao)

        with self.assertRaises(ModificacaoConcorrenteError):
            sessao.atualizar_cliente(nome='Outro')
        with self.assertRaises(ModificacaoConcorrenteError):
            sessao.selecionar_metodo_pagamento('boleto')
        with self.assertRaises(ModificacaoConcorrenteError):
            self.carrinho.adicionar(MANUAL_CG160)

        gateway.liberar.set()
        await tarefa
        self.assertFalse(self.carrinho.travado)

    async def test_recusa_e_nova_tentativa_criam_um_unico_pedido(self):
        """
        Cenário: O primeiro pagamento é recusado e o segundo aprovado.
        """
        self.gateway_mock.autorizar.side_effect = [
            AutorizacaoPagamento(aprovado=False),
            AutorizacaoPagamento(aprovado=True, referencia='PAY-2'),
        ]
        self._preencher()

        with self.assertRaises(PagamentoFalhouError):
            await self.sessao.processar_checkout()

        # Nada foi criado e os dados continuam lá
        self.assertEqual(self.pedido_repo.listar(), [])
        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)
        self.assertEqual(self.sessao.cliente.nome, 'Ana')
        self.assertFalse(self.carrinho.snapshot().vazio)
        self.notificador_mock.enviar_confirmacao_pedido.assert_not_awaited()

        resultado = await self.sessao.processar_checkout()

        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)
        self.assertEqual(self.pedido_repo.listar(), [resultado.pedido])
        self.assertEqual(resultado.pedido.referencia_pagamento, 'PAY-2')

    async def test_finalizar_fora_da_revisao_e_rejeitado(self):
        """
        Cenário: Dados completos, mas o comprador ainda não chegou à revisão.
        Esperado: nenhuma cobrança e a etapa não muda.
        """
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.sessao.atualizar_cliente(nome='Ana', email='ana@x.com')
        self.sessao.selecionar_metodo_pagamento(MetodoPagamento.PIX)

        with self.assertRaises(TransicaoInvalidaError):
            await self.sessao.processar_checkout()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)

        self.sessao.confirmar_dados_cliente()
        with self.assertRaises(TransicaoInvalidaError):
            await self.sessao.processar_checkout()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_PAGAMENTO)

        self.gateway_mock.autorizar.assert_not_awaited()
        self.assertEqual(self.pedido_repo.listar(), [])
        self.assertFalse(self.carrinho.travado)

    async def test_falha_ao_gravar_pedido_nao_cobra_de_novo(self):
        """
        Cenário: O pagamento é aprovado, mas a gravação do pedido falha uma vez.
        Esperado: a nova tentativa grava o pedido do pagamento já aprovado, sem nova cobrança.
        """
        # ARRANGE
        salvar = self.pedido_repo.salvar
        falhas = []

        def salvar_falhando_uma_vez(pedido):
            if not falhas:
                falhas.append(pedido)
                raise RuntimeError("banco indisponível")
            return salvar(pedido)

        self.pedido_repo.salvar = salvar_falhando_uma_vez
        self._preencher()

        # ACT
        with self.assertLogs('topmanuais.core.checkout', level='ERROR') as logs:
            with self.assertRaises(RuntimeError):
                await self.sessao.processar_checkout()

        # ASSERT
        self.assertTrue(any('PAY-1' in linha for linha in logs.output))
        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)
        self.assertFalse(self.sessao.processando)
        self.assertFalse(self.carrinho.travado)
        self.assertEqual(self.pedido_repo.listar(), [])

        # O que foi pago é o que entra no pedido, mesmo que o carrinho mude
        self.carrinho.adicionar(MANUAL_CG160)
        resultado = await self.sessao.processar_checkout()

        self.gateway_mock.autorizar.assert_awaited_once()
        self.assertEqual(self.pedido_repo.listar(), [resultado.pedido])
        self.assertEqual(resultado.pedido.referencia_pagamento, 'PAY-1')
        self.assertEqual(resultado.pedido.total, Decimal('139.90'))
        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)

    async def test_cancelar_com_pagamento_aprovado_sem_pedido_registra_erro(self):
        self.pedido_repo.salvar = Mock(side_effect=RuntimeError("banco indisponível"))
        self._preencher()
        with self.assertLogs('topmanuais.core.checkout', level='ERROR'):
            with self.assertRaises(RuntimeError):
                await self.sessao.processar_checkout()

        with self.assertLogs('topmanuais.core.checkout', level='ERROR') as logs:
            self.assertTrue(await self.sessao.cancelar())

        self.assertIn('PAY-1', logs.output[0])
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)

    async def test_sessao_segue_em_andamento_durante_envio_da_confirmacao(self):
        """
        Cenário: O pedido já foi gravado e a confirmação ainda está sendo enviada.
        Esperado: a sessão continua em andamento até os avisos estarem no resultado.
        """
        liberar = asyncio.Event()

        async def enviar_devagar(mensagem):
            await liberar.wait()
            return False

        self.notificador_mock.enviar_confirmacao_pedido.side_effect = enviar_devagar
        self._preencher()

        tarefa = asyncio.create_task(self.sessao.processar_checkout())
        for _ in range(200):
            if self.sessao.etapa == EtapaCheckout.CONCLUIDO:
                break
            await asyncio.sleep(0.01)

        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)
        self.assertTrue(self.sessao.processando)
        with self.assertRaises(ModificacaoConcorrenteError):
            await self.sessao.processar_checkout()
        with self.assertRaises(ModificacaoConcorrenteError):
            self.carrinho.adicionar(MANUAL_CG160)

        liberar.set()
        resultado = await tarefa

        self.assertEqual(len(resultado.avisos), 1)
        self.assertFalse(self.sessao.processando)
        self.assertFalse(self.carrinho.travado)
        self.assertIs(await self.sessao.processar_checkout(), resultado)

    async def test_numero_do_pedido_e_verificado_antes_de_gravar(self):
        self.emissor.gerar_numero_pedido = Mock(return_value='TM-2024-000042')
        self._preencher()

        resultado = await self.sessao.processar_checkout()

        self.emissor.gerar_numero_pedido.assert_called_once()
        self.assertEqual(resultado.pedido.numero_pedido, 'TM-2024-000042')

    async def test_tempo_esgotado_equivale_a_recusa(self):
        async def lento(metodo, valor):
            await asyncio.sleep(5)
            return AutorizacaoPagamento(aprovado=True)

        self.gateway_mock.autorizar.side_effect = lento
        self._preencher()

        with self.assertRaises(PagamentoFalhouError):
            await self.sessao.processar_checkout(timeout=0.05)

        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)
        self.assertFalse(self.sessao.processando)
        self.assertEqual(self.pedido_repo.listar(), [])

    async def test_erro_no_gateway_vira_falha_de_pagamento(self):
        self.gateway_mock.autorizar.side_effect = ConnectionError("sem rede")
        self._preencher()

        with self.assertRaises(PagamentoFalhouError):
            await self.sessao.processar_checkout()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)

    async def test_carrinho_vazio_nao_muda_a_etapa(self):
        """
        Cenário: O comprador chega à revisão, mas o carrinho está vazio.
        """
        self.sessao.atualizar_cliente(nome='Ana', email='ana@x.com')
        self.sessao.confirmar_dados_cliente()
        self.sessao.selecionar_metodo_pagamento('pix')
        self.sessao.confirmar_pagamento()

        with self.assertRaises(CarrinhoVazioError) as ctx:
            await self.sessao.processar_checkout()

        self.assertIsInstance(ctx.exception, PrecondicaoError)
        self.assertEqual(self.sessao.etapa, EtapaCheckout.REVISANDO)
        self.assertFalse(self.carrinho.travado)
        self.gateway_mock.autorizar.assert_not_awaited()

    async def test_falha_na_notificacao_nao_desfaz_pedido(self):
        self.notificador_mock.enviar_confirmacao_pedido.side_effect = RuntimeError("SMTP fora do ar")
        self._preencher()

        with self.assertLogs('topmanuais.core.checkout', level='ERROR'):
            resultado = await self.sessao.processar_checkout()

        self.assertEqual(len(resultado.avisos), 1)
        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)
        self.assertIsNotNone(self.pedido_repo.buscar_por_id(resultado.pedido.id))
        self.notificador_mock.enviar_confirmacao_pedido.assert_awaited_once()

    async def test_notificacao_recusada_gera_aviso(self):
        self.notificador_mock.enviar_confirmacao_pedido.return_value = False
        self._preencher()

        resultado = await self.sessao.processar_checkout()

        self.assertEqual(len(resultado.avisos), 1)

    async def test_validacao_do_cliente_volta_para_primeira_etapa(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.sessao.atualizar_cliente(nome='', email='ana-sem-arroba')

        with self.assertRaises(DadosInvalidosError) as ctx:
            self.sessao.confirmar_dados_cliente()

        self.assertEqual(ctx.exception.campos, ['nome', 'email'])
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)

        with self.assertRaises(DadosInvalidosError):
            await self.sessao.processar_checkout()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)

    async def test_sem_metodo_de_pagamento_fica_na_etapa_de_pagamento(self):
        self.carrinho.adicionar(MANUAL_EXEMPLO)
        self.sessao.atualizar_cliente(nome='Ana', email='ana@x.com')
        self.sessao.confirmar_dados_cliente()

        with self.assertRaises(DadosInvalidosError) as ctx:
            self.sessao.confirmar_pagamento()
        self.assertEqual(ctx.exception.campos, ['metodo_pagamento'])

        with self.assertRaises(DadosInvalidosError):
            await self.sessao.processar_checkout()
        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_PAGAMENTO)

    def test_metodo_de_pagamento_desconhecido(self):
        with self.assertRaises(DadosInvalidosError):
            self.sessao.selecionar_metodo_pagamento('paypal')

    def test_voltar_entre_etapas(self):
        self._preencher()

        self.assertEqual(self.sessao.voltar(), EtapaCheckout.COLETANDO_PAGAMENTO)
        self.assertEqual(self.sessao.voltar(), EtapaCheckout.COLETANDO_CLIENTE)
        self.assertEqual(self.sessao.voltar(), EtapaCheckout.COLETANDO_CLIENTE)

    def test_esvaziar_carrinho_reinicia_checkout(self):
        self._preencher()

        self.carrinho.remover(MANUAL_EXEMPLO.id)

        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)
        self.assertEqual(self.sessao.cliente, DadosCliente())
        self.assertIsNone(self.sessao.metodo_pagamento)

    async def test_cancelar_reinicia_dados(self):
        self._preencher()

        self.assertTrue(await self.sessao.cancelar())

        self.assertEqual(self.sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)
        self.assertIsNone(self.sessao.metodo_pagamento)

    async def test_cancelar_durante_pagamento_aguarda_resultado(self):
        """
        Cenário: O cancelamento chega enquanto o pagamento está em andamento.
        """
        gateway = GatewayControlado(aprovar=False)
        sessao = self._nova_sessao(gateway)
        self._preencher(sessao)

        tarefa = asyncio.create_task(sessao.processar_checkout())
        await self._aguardar_processamento(sessao)
        cancelamento = asyncio.create_task(sessao.cancelar())
        await asyncio.sleep(0.05)

        self.assertFalse(cancelamento.done())
        self.assertEqual(sessao.etapa, EtapaCheckout.ENVIANDO)

        gateway.liberar.set()
        with self.assertRaises(PagamentoFalhouError):
            await tarefa

        self.assertTrue(await cancelamento)
        self.assertEqual(sessao.etapa, EtapaCheckout.COLETANDO_CLIENTE)

    async def test_cancelar_apos_conclusao_nao_reinicia(self):
        self._preencher()
        await self.sessao.processar_checkout()

        self.assertFalse(await self.sessao.cancelar())
        self.assertEqual(self.sessao.etapa, EtapaCheckout.CONCLUIDO)
        with self.assertRaises(TransicaoInvalidaError):
            self.sessao.atualizar_cliente(nome='Outro')


# ====================================================================
# CASOS DE USO
# ====================================================================

class TestCasosDeUso(unittest.TestCase):

    def setUp(self):
        self.link_repo = LinkDownloadRepositoryMemoria()
        self.pedido_repo = PedidoRepositoryMemoria(link_repo=self.link_repo)
        self.emissor = EmissorPedidos(pedido_repo=self.pedido_repo)

        itens = [ItemPedido(item_id='a', titulo='Manual A', preco_unitario=Decimal('10.00'), quantidade=1,
                            referencia_download='https://arquivos/a.pdf')]
        pedido = self.emissor.criar_pedido(DadosCliente(nome='Ana Souza', email='ana@x.com'),
                                           MetodoPagamento.PIX, itens)
        from dataclasses import replace
        self.pedido = self.pedido_repo.salvar(
            replace(pedido, links_download=tuple(self.emissor.emitir_links(pedido)))
        )

    def test_buscar_item_inexistente(self):
        use_case = BuscarItemCatalogoUseCase(CatalogoMemoria([MANUAL_EXEMPLO]))

        self.assertEqual(use_case.executar(MANUAL_EXEMPLO.id), MANUAL_EXEMPLO)
        with self.assertRaises(ItemNaoEncontradoError):
            use_case.executar('nao-existe')

    def test_listar_links_do_pedido(self):
        links = ListarLinksDoPedidoUseCase(self.pedido_repo, self.link_repo).executar(self.pedido.id)

        self.assertEqual(len(links), 1)
        with self.assertRaises(PedidoNaoEncontradoError):
            ListarLinksDoPedidoUseCase(self.pedido_repo, self.link_repo).executar('outro')

    def test_consumir_link(self):
        link_id = self.pedido.links_download[0].id

        destino = ConsumirLinkDownloadUseCase(self.link_repo).executar(link_id)

        self.assertEqual(destino.referencia, 'https://arquivos/a.pdf')
        self.assertEqual(self.link_repo.buscar_por_id(link_id).quantidade_downloads, 1)

    def test_busca_administrativa(self):
        use_case = GerenciarPedidosAdminUseCase(self.pedido_repo)

        self.assertEqual(len(use_case.listar('souza')), 1)
        self.assertEqual(len(use_case.listar('ANA@X')), 1)
        self.assertEqual(len(use_case.listar(self.pedido.numero_pedido)), 1)
        self.assertEqual(use_case.listar('inexistente'), [])
        self.assertEqual(len(use_case.listar('  ')), 1)
        with self.assertRaises(PedidoNaoEncontradoError):
            use_case.detalhar('nao-existe')
        self.assertEqual(use_case.detalhar_por_numero(self.pedido.numero_pedido.lower()), self.pedido)
        with self.assertRaises(PedidoNaoEncontradoError):
            use_case.detalhar_por_numero('TM-1999-000000')


if __name__ == '__main__':
    unittest.main()
