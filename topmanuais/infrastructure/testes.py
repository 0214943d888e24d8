from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch

import requests
from asgiref.sync import async_to_sync
from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings

# Importamos as classes que queremos testar
from topmanuais.catalog.models import Manual
from topmanuais.vendas.models import LinkDownload as LinkDownloadModel
from topmanuais.infrastructure.repositories import (
    CatalogoRepositoryDjango, PedidoRepositoryDjango, LinkDownloadRepositoryDjango
)
from topmanuais.infrastructure.gateways import (
    GatewayPagamentoSimulado, MercadoPagoGateway, EmailNotificador
)
from topmanuais.infrastructure.sessoes import RegistroSessoesCompra
from topmanuais.core.pedidos import EmissorPedidos
from topmanuais.core.entities import (
    DadosCliente, ItemPedido, MetodoPagamento, EtapaCheckout, MensagemConfirmacao, agora_utc
)
from topmanuais.core.exceptions import (
    LinkEsgotadoError, LinkExpiradoError, LinkNaoEncontradoError, PagamentoFalhouError
)


def criar_pedido_gravado(repo, nome='Ana Souza', email='ana@x.com', emitido_em=None):
    """Cria e grava um pedido com dois itens e seus links."""
    emissor = EmissorPedidos(pedido_repo=repo)
    itens = [
        ItemPedido(item_id='manual-de-exemplo', titulo='Manual de Exemplo', preco_unitario=Decimal('139.90'),
                   quantidade=1, referencia_download='https://arquivos.test/exemplo.pdf'),
        ItemPedido(item_id='manual-cg-160', titulo='Manual CG 160', preco_unitario=Decimal('89.90'),
                   quantidade=2, referencia_download='https://arquivos.test/cg160.pdf'),
    ]
    pedido = emissor.criar_pedido(DadosCliente(nome=nome, email=email, telefone='11999990000'),
                                  MetodoPagamento.PIX, itens, referencia_pagamento='PAY-1')
    links = emissor.emitir_links(pedido, agora=emitido_em or pedido.criado_em)
    return repo.salvar(replace(pedido, links_download=tuple(links)))


# ====================================================================
# REPOSITÓRIOS
# ====================================================================

@override_settings(DOWNLOAD_BASE_URL='https://arquivos.test/download/')
class CatalogoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = CatalogoRepositoryDjango()
        self.manual = Manual.objects.create(titulo='Manual de Exemplo', preco=Decimal('139.90'))

    def test_buscar_por_id_com_sucesso(self):
        """
        Cenário: O slug do manual é o identificador usado no carrinho.
        """
        # ACT
        item = self.repository.buscar_por_id('manual-de-exemplo')

        # ASSERT
        self.assertEqual(item.id, 'manual-de-exemplo')
        self.assertEqual(item.preco_unitario, Decimal('139.90'))
        # Sem arquivo próprio, usa a URL base de download
        self.assertEqual(item.referencia_download, 'https://arquivos.test/download/manual-de-exemplo')

    def test_manual_nao_publicado_nao_e_encontrado(self):
        self.manual.publicado = False
        self.manual.save()

        self.assertIsNone(self.repository.buscar_por_id('manual-de-exemplo'))
        self.assertIsNone(self.repository.buscar_por_id('id-nao-existente'))


class PedidoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = PedidoRepositoryDjango()

    def test_salvar_e_buscar_pedido_completo(self):
        """
        Cenário: O pedido volta do banco com itens e links na ordem em que foram gravados.
        """
        # ARRANGE / ACT
        pedido = criar_pedido_gravado(self.repository)

        # ASSERT
        encontrado = self.repository.buscar_por_id(pedido.id)
        self.assertEqual(encontrado.numero_pedido, pedido.numero_pedido)
        self.assertEqual(encontrado.total, Decimal('319.70'))
        self.assertEqual(encontrado.metodo_pagamento, MetodoPagamento.PIX)
        self.assertEqual(encontrado.referencia_pagamento, 'PAY-1')
        self.assertEqual([i.item_id for i in encontrado.itens], ['manual-de-exemplo', 'manual-cg-160'])
        self.assertEqual(len(encontrado.links_download), 2)
        self.assertEqual(encontrado.links_download[0].limite_downloads, 5)
        self.assertEqual(self.repository.buscar_por_numero(pedido.numero_pedido).id, pedido.id)
        self.assertTrue(self.repository.numero_existe(pedido.numero_pedido))

    def test_buscar_por_id_invalido_retorna_none(self):
        self.assertIsNone(self.repository.buscar_por_id('nao-e-uuid'))
        self.assertIsNone(self.repository.buscar_por_numero('TM-0000-000000'))

    def test_listar_com_busca(self):
        """
        Cenário: O administrador busca por nome, e-mail ou número do pedido.
        """
        ana = criar_pedido_gravado(self.repository)
        criar_pedido_gravado(self.repository, nome='Bruno Lima', email='bruno@y.com')

        self.assertEqual(len(self.repository.listar()), 2)
        self.assertEqual([p.id for p in self.repository.listar('souza')], [ana.id])
        self.assertEqual(len(self.repository.listar('BRUNO@')), 1)
        self.assertEqual([p.id for p in self.repository.listar(ana.numero_pedido)], [ana.id])
        self.assertEqual(self.repository.listar('ninguem'), [])


class LinkDownloadRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = LinkDownloadRepositoryDjango()
        self.pedido = criar_pedido_gravado(PedidoRepositoryDjango())
        self.link = self.pedido.links_download[0]

    def test_listar_por_pedido(self):
        links = self.repository.listar_por_pedido(self.pedido.id)

        self.assertEqual([l.item_id for l in links], ['manual-de-exemplo', 'manual-cg-160'])
        self.assertEqual(self.repository.listar_por_pedido('nao-e-uuid'), [])

    def test_consumir_ate_o_limite(self):
        """
        Cenário: Cinco downloads são liberados, o sexto é recusado.
        """
        agora = agora_utc()
        for restante in range(4, -1, -1):
            destino = self.repository.consumir(self.link.id, agora)
            self.assertEqual(destino.downloads_restantes, restante)
            self.assertEqual(destino.referencia, 'https://arquivos.test/exemplo.pdf')

        with self.assertRaises(LinkEsgotadoError):
            self.repository.consumir(self.link.id, agora)

        self.assertEqual(LinkDownloadModel.objects.get(pk=self.link.id).quantidade_downloads, 5)

    def test_consumir_link_expirado(self):
        depois_do_prazo = self.link.expira_em + timedelta(seconds=1)

        with self.assertRaises(LinkExpiradoError):
            self.repository.consumir(self.link.id, depois_do_prazo)

        self.assertEqual(LinkDownloadModel.objects.get(pk=self.link.id).quantidade_downloads, 0)

    def test_expirado_tem_precedencia_sobre_esgotado(self):
        LinkDownloadModel.objects.filter(pk=self.link.id).update(quantidade_downloads=5)

        with self.assertRaises(LinkExpiradoError):
            self.repository.consumir(self.link.id, self.link.expira_em)

    def test_consumir_link_inexistente(self):
        with self.assertRaises(LinkNaoEncontradoError):
            self.repository.consumir('00000000-0000-0000-0000-000000000000', agora_utc())
        with self.assertRaises(LinkNaoEncontradoError):
            self.repository.consumir('nao-e-uuid', agora_utc())


# ====================================================================
# GATEWAYS
# ====================================================================

class GatewayPagamentoTestCase(TestCase):

    def test_gateway_simulado(self):
        aprovado = async_to_sync(GatewayPagamentoSimulado().autorizar)(MetodoPagamento.PIX, Decimal('10.00'))
        recusado = async_to_sync(GatewayPagamentoSimulado(aprovar=False).autorizar)(
            MetodoPagamento.BOLETO, Decimal('10.00')
        )

        self.assertTrue(aprovado.aprovado)
        self.assertTrue(aprovado.referencia.startswith('SIM-'))
        self.assertFalse(recusado.aprovado)
        self.assertIsNone(recusado.referencia)

    @patch('topmanuais.infrastructure.gateways.requests.post')
    def test_mercado_pago_aprovado(self, mock_post):
        """
        Cenário: A API do Mercado Pago responde com status "approved".
        """
        # ARRANGE
        mock_post.return_value = Mock(status_code=201)
        mock_post.return_value.json.return_value = {'id': 123456, 'status': 'approved'}
        gateway = MercadoPagoGateway(access_token='TEST-TOKEN')

        # ACT
        autorizacao = async_to_sync(gateway.autorizar)(MetodoPagamento.PIX, Decimal('139.90'))

        # ASSERT
        self.assertTrue(autorizacao.aprovado)
        self.assertEqual(autorizacao.referencia, '123456')
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['transaction_amount'], 139.90)
        self.assertEqual(payload['payment_method_id'], 'pix')
        headers = mock_post.call_args.kwargs['headers']
        self.assertEqual(headers['Authorization'], 'Bearer TEST-TOKEN')
        self.assertIn('X-Idempotency-Key', headers)

    @patch('topmanuais.infrastructure.gateways.requests.post')
    def test_mercado_pago_pendente_conta_como_recusa(self, mock_post):
        mock_post.return_value = Mock(status_code=201)
        mock_post.return_value.json.return_value = {'id': 1, 'status': 'pending'}

        autorizacao = async_to_sync(MercadoPagoGateway(access_token='T').autorizar)(
            MetodoPagamento.BOLETO, Decimal('10.00')
        )

        self.assertFalse(autorizacao.aprovado)

    @patch('topmanuais.infrastructure.gateways.requests.post')
    def test_mercado_pago_erro_de_conexao(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("sem rede")

        with self.assertRaises(PagamentoFalhouError):
            async_to_sync(MercadoPagoGateway(access_token='T').autorizar)(MetodoPagamento.PIX, Decimal('1.00'))


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class EmailNotificadorTestCase(TestCase):

    def test_envia_confirmacao_com_links(self):
        """
        Cenário: O e-mail de confirmação lista cada manual com seu link.
        """
        # ARRANGE
        pedido = criar_pedido_gravado(PedidoRepositoryDjango())
        mensagem = MensagemConfirmacao.do_pedido(pedido)

        # ACT
        enviado = async_to_sync(EmailNotificador().enviar_confirmacao_pedido)(mensagem)

        # ASSERT
        self.assertTrue(enviado)
        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.subject, 'Pedido Confirmado - TopManuais')
        self.assertEqual(email.to, ['ana@x.com'])
        self.assertIn(pedido.numero_pedido, email.body)
        self.assertIn('Ana Souza', email.body)
        html = email.alternatives[0][0]
        self.assertIn('https://arquivos.test/exemplo.pdf', html)
        self.assertIn('https://arquivos.test/cg160.pdf', html)


# ====================================================================
# SESSÕES DE COMPRA E COMANDOS
# ====================================================================

class RegistroSessoesCompraTestCase(TestCase):

    def setUp(self):
        self.fabrica = Mock(side_effect=lambda carrinho: Mock(etapa=EtapaCheckout.COLETANDO_CLIENTE, processando=False))
        self.registro = RegistroSessoesCompra(fabrica_checkout=self.fabrica)

    def test_cada_chave_tem_sua_sessao(self):
        primeira = self.registro.obter('a')

        self.assertIs(self.registro.obter('a'), primeira)
        self.assertIsNot(self.registro.obter('b').carrinho, primeira.carrinho)
        self.assertEqual(self.fabrica.call_count, 2)

    def test_checkout_concluido_e_substituido(self):
        sessao = self.registro.obter('a')
        antigo = sessao.checkout
        antigo.etapa = EtapaCheckout.CONCLUIDO

        atual = self.registro.iniciar_novo_checkout_se_concluido('a')

        antigo.desanexar.assert_called_once()
        self.assertIsNot(atual.checkout, antigo)
        self.assertIs(atual.carrinho, sessao.carrinho)

    def test_descartar(self):
        checkout = self.registro.obter('a').checkout

        self.registro.descartar('a')

        checkout.desanexar.assert_called_once()
        self.assertIsNot(self.registro.obter('a').checkout, checkout)

    def test_sessao_ociosa_e_descartada(self):
        """
        Cenário: um visitante some por mais tempo que o TTL.
        Esperado: a próxima visita de outra chave descarta a sessão ociosa.
        """
        # ARRANGE
        relogio = Mock(return_value=0.0)
        registro = RegistroSessoesCompra(
            fabrica_checkout=self.fabrica, ttl_segundos=100, intervalo_limpeza=10, relogio=relogio
        )
        ociosa = registro.obter('ociosa')
        relogio.return_value = 50.0
        registro.obter('ativa')

        # ACT
        relogio.return_value = 120.0
        registro.obter('ativa')

        # ASSERT
        ociosa.checkout.desanexar.assert_called_once()
        self.assertEqual(len(registro), 1)
        self.assertIsNot(registro.obter('ociosa'), ociosa)

    def test_sessao_em_finalizacao_nao_e_descartada(self):
        relogio = Mock(return_value=0.0)
        registro = RegistroSessoesCompra(
            fabrica_checkout=self.fabrica, ttl_segundos=100, intervalo_limpeza=10, relogio=relogio
        )
        sessao = registro.obter('pagando')
        sessao.checkout.processando = True

        relogio.return_value = 500.0
        registro.obter('outra')

        sessao.checkout.desanexar.assert_not_called()
        self.assertEqual(len(registro), 2)


class CarregarManuaisCommandTestCase(TestCase):

    def test_carga_idempotente(self):
        call_command('carregar_manuais', stdout=StringIO())
        call_command('carregar_manuais', stdout=StringIO())

        self.assertEqual(Manual.objects.count(), 4)
        self.assertEqual(Manual.objects.get(slug='manual-de-exemplo').preco, Decimal('139.90'))
