from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from topmanuais.catalog.models import Manual
from topmanuais.infrastructure.instances import registro_sessoes
from topmanuais.vendas.models import Pedido as PedidoModel


@override_settings(
    EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend',
    PAGAMENTO_GATEWAY='simulado',
    PAGAMENTO_SIMULADO_APROVAR=True,
    PAGAMENTO_SIMULADO_LATENCIA=0.0,
)
class LojaAPITestCase(APITestCase):
    """Fluxo completo pela API: carrinho, checkout, downloads e administração."""

    def setUp(self):
        registro_sessoes.limpar()
        self.manual = Manual.objects.create(
            titulo='Manual de Exemplo',
            preco=Decimal('139.90'),
            url_download='https://arquivos.test/exemplo.pdf',
        )
        self.outro = Manual.objects.create(titulo='Manual CG 160', preco=Decimal('89.90'))

    def tearDown(self):
        registro_sessoes.limpar()

    # Auxiliares
    def adicionar(self, item_id='manual-de-exemplo'):
        return self.client.post(reverse('carrinho'), {'item_id': item_id}, format='json')

    def preencher_checkout(self, metodo='pix'):
        resposta = self.client.post(reverse('checkout_cliente'), {'nome': 'Ana', 'email': 'ana@x.com'}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        resposta = self.client.post(reverse('checkout_pagamento'), {'metodo_pagamento': metodo}, format='json')
        self.assertEqual(resposta.status_code, status.HTTP_200_OK)
        return resposta

    # ====================================================================
    # CARRINHO
    # ====================================================================

    def test_adicionar_item_duplicado(self):
        """
        Cenário: O mesmo manual adicionado duas vezes continua com quantidade 1.
        """
        # ACT
        primeira = self.adicionar()
        segunda = self.adicionar()

        # ASSERT
        self.assertEqual(primeira.status_code, status.HTTP_201_CREATED)
        self.assertEqual(primeira.data['mensagem'], 'Manual de Exemplo adicionado ao carrinho!')
        self.assertEqual(segunda.status_code, status.HTTP_200_OK)
        self.assertEqual(segunda.data['mensagem'], 'Este manual já está no carrinho')
        self.assertEqual(len(segunda.data['carrinho']['itens']), 1)
        self.assertEqual(segunda.data['carrinho']['total'], '139.90')

    def test_adicionar_item_inexistente(self):
        resposta = self.adicionar('nao-existe')

        self.assertEqual(resposta.status_code, status.HTTP_404_NOT_FOUND)

    def test_alterar_quantidade_e_remover(self):
        self.adicionar()
        self.adicionar('manual-cg-160')

        resposta = self.client.patch(reverse('item_carrinho', args=['manual-de-exemplo']),
                                     {'quantidade': 3}, format='json')
        self.assertEqual(resposta.data['total'], '509.60')
        self.assertEqual(resposta.data['quantidade_itens'], 4)

        resposta = self.client.patch(reverse('item_carrinho', args=['manual-cg-160']),
                                     {'quantidade': 0}, format='json')
        self.assertEqual([i['item_id'] for i in resposta.data['itens']], ['manual-de-exemplo'])

        resposta = self.client.delete(reverse('item_carrinho', args=['manual-de-exemplo']))
        self.assertEqual(resposta.data['itens'], [])
        self.assertEqual(resposta.data['total'], '0.00')

    def test_carrinhos_de_sessoes_diferentes_sao_independentes(self):
        self.adicionar()

        self.client.cookies.clear()
        resposta = self.client.get(reverse('carrinho'))

        self.assertEqual(resposta.data['itens'], [])

    # ====================================================================
    # CHECKOUT
    # ====================================================================

    def test_compra_completa_e_downloads(self):
        """
        Cenário: Compra de um manual de 139,90 com PIX, seguida dos downloads.
        """
        # ARRANGE
        self.adicionar()
        estado = self.preencher_checkout()
        self.assertEqual(estado.data['etapa'], 'revisando')

        # ACT
        resposta = self.client.post(reverse('checkout_confirmar'))

        # ASSERT: pedido criado e carrinho esvaziado
        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        pedido = resposta.data['pedido']
        self.assertEqual(pedido['total'], '139.90')
        self.assertEqual(pedido['metodo_pagamento'], 'pix')
        self.assertEqual(pedido['metodo_pagamento_rotulo'], 'PIX')
        self.assertEqual(pedido['status_pagamento'], 'approved')
        self.assertRegex(pedido['numero_pedido'], r'^TM-\d{4}-\d{6}$')
        self.assertEqual(len(pedido['links_download']), 1)
        self.assertEqual(resposta.data['avisos'], [])
        self.assertEqual(PedidoModel.objects.count(), 1)
        self.assertEqual(self.client.get(reverse('carrinho')).data['itens'], [])

        # Confirmação enviada uma única vez
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(pedido['numero_pedido'], mail.outbox[0].body)

        # Nova confirmação devolve o mesmo pedido
        repetida = self.client.post(reverse('checkout_confirmar'))
        self.assertEqual(repetida.status_code, status.HTTP_200_OK)
        self.assertEqual(repetida.data['pedido']['id'], pedido['id'])
        self.assertEqual(PedidoModel.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

        # Página de download
        links = self.client.get(reverse('pedido_downloads', args=[pedido['id']])).data
        self.assertEqual(len(links), 1)
        self.assertEqual(links[0]['downloads_restantes'], 5)
        self.assertTrue(links[0]['utilizavel'])

        url_download = reverse('download', args=[links[0]['id']])
        for _ in range(5):
            download = self.client.get(url_download)
            self.assertEqual(download.status_code, status.HTTP_302_FOUND)
            self.assertEqual(download['Location'], 'https://arquivos.test/exemplo.pdf')

        esgotado = self.client.get(url_download)
        self.assertEqual(esgotado.status_code, status.HTTP_410_GONE)
        self.assertEqual(esgotado.data['detalhe'], 'Entre em contato com o suporte.')

        links = self.client.get(reverse('pedido_downloads', args=[pedido['id']])).data
        self.assertFalse(links[0]['utilizavel'])

    def test_nova_compra_apos_conclusao(self):
        self.adicionar()
        self.preencher_checkout()
        self.client.post(reverse('checkout_confirmar'))

        self.adicionar('manual-cg-160')
        self.preencher_checkout(metodo='boleto')
        resposta = self.client.post(reverse('checkout_confirmar'))

        self.assertEqual(resposta.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resposta.data['pedido']['total'], '89.90')
        self.assertEqual(PedidoModel.objects.count(), 2)

    def test_dados_do_cliente_invalidos(self):
        resposta = self.client.post(reverse('checkout_cliente'), {'nome': '', 'email': 'sem-arroba'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resposta.data['campos'], ['nome', 'email'])
        self.assertEqual(self.client.get(reverse('checkout')).data['etapa'], 'coletando_cliente')

    def test_pagamento_antes_dos_dados_do_cliente(self):
        resposta = self.client.post(reverse('checkout_pagamento'), {'metodo_pagamento': 'pix'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)

    def test_metodo_de_pagamento_desconhecido(self):
        self.client.post(reverse('checkout_cliente'), {'nome': 'Ana', 'email': 'ana@x.com'}, format='json')

        resposta = self.client.post(reverse('checkout_pagamento'), {'metodo_pagamento': 'paypal'}, format='json')

        self.assertEqual(resposta.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirmar_com_carrinho_vazio(self):
        self.preencher_checkout()

        resposta = self.client.post(reverse('checkout_confirmar'))

        self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(self.client.get(reverse('checkout')).data['etapa'], 'revisando')
        self.assertEqual(PedidoModel.objects.count(), 0)

    @override_settings(PAGAMENTO_SIMULADO_APROVAR=False)
    def test_pagamento_recusado(self):
        """
        Cenário: Pagamento recusado não cria pedido nem esvazia o carrinho.
        """
        self.adicionar()
        self.preencher_checkout(metodo='credit_card')

        resposta = self.client.post(reverse('checkout_confirmar'))

        self.assertEqual(resposta.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(PedidoModel.objects.count(), 0)
        self.assertEqual(len(self.client.get(reverse('carrinho')).data['itens']), 1)
        estado = self.client.get(reverse('checkout')).data
        self.assertEqual(estado['etapa'], 'revisando')
        self.assertEqual(estado['cliente']['nome'], 'Ana')
        self.assertEqual(len(mail.outbox), 0)

    def test_confirmar_fora_da_revisao(self):
        """
        Cenário: O cliente volta para as etapas de dados e tenta finalizar dali.
        Esperado: 409, nenhuma cobrança e nenhum pedido.
        """
        self.adicionar()
        self.preencher_checkout()

        for etapa in ('coletando_pagamento', 'coletando_cliente'):
            self.assertEqual(self.client.post(reverse('checkout_voltar')).data['etapa'], etapa)
            resposta = self.client.post(reverse('checkout_confirmar'))

            self.assertEqual(resposta.status_code, status.HTTP_409_CONFLICT)
            self.assertEqual(self.client.get(reverse('checkout')).data['etapa'], etapa)
        self.assertEqual(PedidoModel.objects.count(), 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_voltar_e_cancelar(self):
        self.adicionar()
        self.preencher_checkout()

        voltar = self.client.post(reverse('checkout_voltar'))
        self.assertEqual(voltar.data['etapa'], 'coletando_pagamento')

        cancelar = self.client.post(reverse('checkout_cancelar'))
        self.assertTrue(cancelar.data['cancelado'])
        self.assertEqual(cancelar.data['etapa'], 'coletando_cliente')
        self.assertIsNone(cancelar.data['metodo_pagamento'])

    def test_esvaziar_carrinho_reinicia_checkout(self):
        self.adicionar()
        self.preencher_checkout()

        self.client.delete(reverse('carrinho'))

        self.assertEqual(self.client.get(reverse('checkout')).data['etapa'], 'coletando_cliente')

    def test_metodos_de_pagamento(self):
        resposta = self.client.get(reverse('metodos_pagamento'))

        self.assertEqual(resposta.data, [
            {'id': 'pix', 'nome': 'PIX'},
            {'id': 'credit_card', 'nome': 'Cartão de Crédito'},
            {'id': 'boleto', 'nome': 'Boleto Bancário'},
        ])

    # ====================================================================
    # DOWNLOADS E ADMINISTRAÇÃO
    # ====================================================================

    def test_pedido_e_link_inexistentes(self):
        inexistente = '00000000-0000-0000-0000-000000000000'

        self.assertEqual(self.client.get(reverse('pedido_downloads', args=[inexistente])).status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(reverse('download', args=[inexistente])).status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_consulta_administrativa(self):
        self.adicionar()
        self.preencher_checkout()
        pedido = self.client.post(reverse('checkout_confirmar')).data['pedido']

        anonimo = self.client.get(reverse('admin_pedidos'))
        self.assertIn(anonimo.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

        admin = get_user_model().objects.create_superuser('admin', 'admin@topmanuais.com', 'senha-forte-123')
        self.client.force_authenticate(user=admin)

        lista = self.client.get(reverse('admin_pedidos'), {'busca': 'ANA@x'})
        self.assertEqual([p['id'] for p in lista.data], [pedido['id']])
        self.assertEqual(self.client.get(reverse('admin_pedidos'), {'busca': 'bruno'}).data, [])

        detalhe = self.client.get(reverse('admin_pedido_detalhe', args=[pedido['id']]))
        self.assertEqual(detalhe.data['numero_pedido'], pedido['numero_pedido'])
        self.assertEqual(detalhe.data['cliente']['email'], 'ana@x.com')

        por_numero = self.client.get(reverse('admin_pedido_por_numero', args=[pedido['numero_pedido'].lower()]))
        self.assertEqual(por_numero.data['id'], pedido['id'])
        inexistente = self.client.get(reverse('admin_pedido_por_numero', args=['TM-1999-000000']))
        self.assertEqual(inexistente.status_code, status.HTTP_404_NOT_FOUND)
