# topmanuais/core/pedidos.py
"""
Emissão de pedidos e links de download.

O emissor monta o Pedido imutável a partir dos itens comprados, gera um link de
download por item e controla o consumo desses links (prazo e limite de usos).
"""
import logging
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from topmanuais.core.entities import (
    Pedido, ItemPedido, DadosCliente, LinkDownload, DestinoDownload,
    MetodoPagamento, StatusPagamento, agora_utc, arredondar
)
from topmanuais.core.exceptions import (
    CarrinhoVazioError, DadosInvalidosError, LinkExpiradoError, LinkEsgotadoError
)
from topmanuais.core.ports import IPedidoRepository

logger = logging.getLogger(__name__)

VALIDADE_PADRAO_DIAS = 30
LIMITE_PADRAO_DOWNLOADS = 5
PREFIXO_PADRAO = 'TM'
TENTATIVAS_NUMERO_PEDIDO = 20


class EmissorPedidos:
    """Monta pedidos, emite links de download e registra seu consumo."""

    def __init__(
        self,
        pedido_repo: Optional[IPedidoRepository] = None,
        validade_dias: int = VALIDADE_PADRAO_DIAS,
        limite_downloads: int = LIMITE_PADRAO_DOWNLOADS,
        prefixo: str = PREFIXO_PADRAO,
    ):
        self.pedido_repo = pedido_repo
        self.validade = timedelta(days=validade_dias)
        self.limite_downloads = limite_downloads
        self.prefixo = prefixo
        self._locks: Dict[str, "_TravaLink"] = {}
        self._locks_guard = threading.Lock()

    # ====================================================================
    # PEDIDO
    # ====================================================================

    def sortear_numero_pedido(self, agora: Optional[datetime] = None) -> str:
        """Número no formato TM-2024-123456, sem consultar o repositório."""
        ano = (agora or agora_utc()).year
        return f"{self.prefixo}-{ano}-{secrets.randbelow(1_000_000):06d}"

    def gerar_numero_pedido(self, agora: Optional[datetime] = None) -> str:
        """Sorteia números até encontrar um que ainda não exista no repositório."""
        for _ in range(TENTATIVAS_NUMERO_PEDIDO):
            numero = self.sortear_numero_pedido(agora)
            if self.pedido_repo is None or not self.pedido_repo.numero_existe(numero):
                return numero
        raise RuntimeError("Não foi possível gerar um número de pedido único.")

    def criar_pedido(
        self,
        cliente: DadosCliente,
        metodo_pagamento: MetodoPagamento,
        itens: Iterable[ItemPedido],
        numero_pedido: Optional[str] = None,
        referencia_pagamento: Optional[str] = None,
        agora: Optional[datetime] = None,
    ) -> Pedido:
        """
        Constrói o pedido sem I/O. O total é sempre recalculado a partir dos itens,
        nunca recebido do cliente.

        Quem grava o pedido deve informar um número já verificado com
        `gerar_numero_pedido`; sem ele, o número é apenas sorteado.
        """
        itens = tuple(itens)
        if not itens:
            raise CarrinhoVazioError("Não é possível criar um pedido sem itens.")
        if cliente.campos_invalidos():
            raise DadosInvalidosError("Dados do cliente incompletos.", campos=cliente.campos_invalidos())

        total = arredondar(sum((item.subtotal for item in itens), Decimal('0')))
        return Pedido(
            numero_pedido=numero_pedido or self.sortear_numero_pedido(agora),
            cliente=cliente,
            itens=itens,
            total=total,
            metodo_pagamento=MetodoPagamento.parse(metodo_pagamento),
            status_pagamento=StatusPagamento.APROVADO,
            criado_em=agora or agora_utc(),
            referencia_pagamento=referencia_pagamento,
        )

    # ====================================================================
    # LINKS DE DOWNLOAD
    # ====================================================================

    def emitir_links(self, pedido: Pedido, agora: Optional[datetime] = None) -> List[LinkDownload]:
        """Um link por item do pedido, independente da quantidade comprada."""
        emitido_em = agora or agora_utc()
        return [
            LinkDownload(
                pedido_id=pedido.id,
                item_id=item.item_id,
                titulo=item.titulo,
                referencia_destino=item.referencia_download,
                emitido_em=emitido_em,
                expira_em=emitido_em + self.validade,
                quantidade_downloads=0,
                limite_downloads=self.limite_downloads,
            )
            for item in pedido.itens
        ]

    def consumir(self, link: LinkDownload, agora: Optional[datetime] = None) -> DestinoDownload:
        """
        Registra um download. A verificação e o incremento acontecem sob a trava do
        link, então duas chamadas simultâneas não ocupam a mesma vaga.
        """
        agora = agora or agora_utc()
        with self._lock_do_link(link.id):
            if link.expirado(agora):
                logger.warning("Link %s expirado em %s.", link.id, link.expira_em)
                raise LinkExpiradoError()
            if link.esgotado():
                logger.warning("Link %s atingiu o limite de %s downloads.", link.id, link.limite_downloads)
                raise LinkEsgotadoError()
            link.quantidade_downloads += 1
            return DestinoDownload(
                link_id=link.id,
                referencia=link.referencia_destino,
                downloads_restantes=link.downloads_restantes,
            )

    @contextmanager
    def _lock_do_link(self, link_id: str):
        """Trava por link, descartada quando ninguém mais a usa."""
        with self._locks_guard:
            trava = self._locks.setdefault(link_id, _TravaLink())
            trava.usuarios += 1
        try:
            with trava.lock:
                yield
        finally:
            with self._locks_guard:
                trava.usuarios -= 1
                if trava.usuarios == 0:
                    del self._locks[link_id]


class _TravaLink:
    __slots__ = ('lock', 'usuarios')

    def __init__(self):
        self.lock = threading.Lock()
        self.usuarios = 0
