import asyncio
import logging
import uuid
from decimal import Decimal
from typing import Optional

import requests
from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

# Importa os Protocols e Entidades da camada Core
from topmanuais.core.ports import IGatewayPagamento, INotificadorPedido
from topmanuais.core.entities import AutorizacaoPagamento, MensagemConfirmacao, MetodoPagamento
from topmanuais.core.exceptions import PagamentoFalhouError

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

class GatewayPagamentoSimulado(IGatewayPagamento):
    """
    Processador de pagamento simulado, usado em desenvolvimento e testes.
    Aprova (ou recusa) após a latência configurada.
    """

    def __init__(self, aprovar: bool = True, latencia: float = 0.0):
        self.aprovar = aprovar
        self.latencia = latencia

    async def autorizar(self, metodo: MetodoPagamento, valor: Decimal) -> AutorizacaoPagamento:
        if self.latencia:
            await asyncio.sleep(self.latencia)
        logger.info("[SIMULADO] Pagamento %s de R$ %s: %s", metodo.value, valor,
                    "aprovado" if self.aprovar else "recusado")
        return AutorizacaoPagamento(
            aprovado=self.aprovar,
            referencia=f"SIM-{uuid.uuid4().hex[:12]}" if self.aprovar else None,
        )


class MercadoPagoGateway(IGatewayPagamento):
    """
    Gateway para comunicação com a API de Pagamento do Mercado Pago.
    Somente o status "approved" é considerado aprovação; pendentes contam como recusa.
    """

    _METODO_MAP = {
        MetodoPagamento.PIX: "pix",
        MetodoPagamento.BOLETO: "bolbradesco",
        MetodoPagamento.CARTAO_CREDITO: "visa",
    }

    def __init__(self, access_token: Optional[str] = None, email_pagador: str = "comprador@topmanuais.com",
                 timeout: int = 15):
        self.api_base_url = "https://api.mercadopago.com/v1"
        self.access_token = access_token or getattr(settings, "MERCADO_PAGO_ACCESS_TOKEN", "")
        self.email_pagador = email_pagador
        self.timeout = timeout

        if not self.access_token:
            logger.error("MERCADO_PAGO_ACCESS_TOKEN não configurado. Pagamentos reais falharão.")

    async def autorizar(self, metodo: MetodoPagamento, valor: Decimal) -> AutorizacaoPagamento:
        return await sync_to_async(self._criar_pagamento, thread_sensitive=False)(metodo, valor)

    def _criar_pagamento(self, metodo: MetodoPagamento, valor: Decimal) -> AutorizacaoPagamento:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "X-Idempotency-Key": str(uuid.uuid4()),  # Para evitar duplicidade
        }
        payload = {
            "transaction_amount": float(valor),
            "payment_method_id": self._METODO_MAP[metodo],
            "description": "Pedido TopManuais",
            "payer": {"email": self.email_pagador},
        }

        try:
            url = f"{self.api_base_url}/payments"
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise PagamentoFalhouError(f"Erro de conexão com a API do Mercado Pago: {e}")

        data = response.json()
        mp_status = data.get("status")
        if mp_status != "approved":
            logger.warning("Mercado Pago retornou status %s para pagamento %s.", mp_status, metodo.value)
        return AutorizacaoPagamento(
            aprovado=mp_status == "approved",
            referencia=str(data.get("id")) if data.get("id") is not None else None,
        )


class EmailNotificador(INotificadorPedido):
    """
    Envio da confirmação do pedido pelo sistema de e-mail do Django.
    Implementa o Protocolo INotificadorPedido.
    """
    template_name = 'email/confirmacao_pedido.html'
    assunto = "Pedido Confirmado - TopManuais"

    async def enviar_confirmacao_pedido(self, mensagem: MensagemConfirmacao) -> bool:
        return await sync_to_async(self._enviar)(mensagem)

    def _enviar(self, mensagem: MensagemConfirmacao) -> bool:
        contexto = {
            'nome_cliente': mensagem.nome_cliente,
            'numero_pedido': mensagem.numero_pedido,
            'itens': [{'titulo': titulo, 'url': url} for titulo, url in mensagem.itens],
            'total': mensagem.total,
            'validade_dias': settings.DOWNLOAD_VALIDADE_DIAS,
            'limite_downloads': settings.DOWNLOAD_LIMITE,
            'suporte_url': settings.SUPORTE_URL,
        }
        # Renderiza o conteúdo HTML do e-mail
        html_content = render_to_string(self.template_name, contexto)
        # Versão de texto puro para clientes que não suportam HTML
        text_content = strip_tags(html_content)

        email = EmailMultiAlternatives(
            self.assunto, text_content, settings.DEFAULT_FROM_EMAIL, to=[mensagem.email_cliente]
        )
        email.attach_alternative(html_content, "text/html")
        enviados = email.send()
        logger.info("Confirmação do pedido %s enviada para %s.", mensagem.numero_pedido, mensagem.email_cliente)
        return enviados == 1
