# topmanuais/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
from datetime import datetime
from typing import List, Optional

from topmanuais.core.entities import (
    ItemCatalogo, Pedido, LinkDownload, DestinoDownload, agora_utc
)
from topmanuais.core.exceptions import (
    ItemNaoEncontradoError,
    PedidoNaoEncontradoError,
)
from topmanuais.core.ports import (
    ICatalogoRepository,
    IPedidoRepository,
    ILinkDownloadRepository,
)

logger = logging.getLogger(__name__)


# ====================================================================
# 1. CASOS DE USO DO CATÁLOGO
# ====================================================================

class BuscarItemCatalogoUseCase:
    """Busca o manual que será colocado no carrinho."""
    def __init__(self, catalogo_repo: ICatalogoRepository):
        self.catalogo_repo = catalogo_repo

    def executar(self, item_id: str) -> ItemCatalogo:
        item = self.catalogo_repo.buscar_por_id(item_id)
        if not item:
            raise ItemNaoEncontradoError(f"Manual '{item_id}' não encontrado.")
        return item


# ====================================================================
# 2. CASOS DE USO DA PÁGINA DE DOWNLOAD
# ====================================================================

class ListarLinksDoPedidoUseCase:
    """Lista os links de um pedido com prazo e contagem de downloads."""
    def __init__(self, pedido_repo: IPedidoRepository, link_repo: ILinkDownloadRepository):
        self.pedido_repo = pedido_repo
        self.link_repo = link_repo

    def executar(self, pedido_id: str) -> List[LinkDownload]:
        if not self.pedido_repo.buscar_por_id(pedido_id):
            raise PedidoNaoEncontradoError(f"Pedido {pedido_id} não encontrado.")
        return self.link_repo.listar_por_pedido(pedido_id)


class ConsumirLinkDownloadUseCase:
    """Registra um download e devolve o local do arquivo."""
    def __init__(self, link_repo: ILinkDownloadRepository):
        self.link_repo = link_repo

    def executar(self, link_id: str, agora: Optional[datetime] = None) -> DestinoDownload:
        destino = self.link_repo.consumir(link_id, agora or agora_utc())
        logger.info("Download do link %s liberado (%s restantes).", link_id, destino.downloads_restantes)
        return destino


# ====================================================================
# 3. CASOS DE USO DO ADMINISTRADOR
# ====================================================================

class GerenciarPedidosAdminUseCase:
    """Consulta de pedidos para o painel administrativo."""
    def __init__(self, pedido_repo: IPedidoRepository):
        self.pedido_repo = pedido_repo

    def listar(self, termo: Optional[str] = None) -> List[Pedido]:
        """Busca por número do pedido, nome ou e-mail do cliente."""
        termo = (termo or '').strip() or None
        return self.pedido_repo.listar(termo)

    def detalhar(self, pedido_id: str) -> Pedido:
        pedido = self.pedido_repo.buscar_por_id(pedido_id)
        if not pedido:
            raise PedidoNaoEncontradoError(f"Pedido {pedido_id} não encontrado.")
        return pedido

    def detalhar_por_numero(self, numero_pedido: str) -> Pedido:
        """Consulta pelo número informado ao cliente (ex.: TM-2024-123456)."""
        pedido = self.pedido_repo.buscar_por_numero(numero_pedido.strip().upper())
        if not pedido:
            raise PedidoNaoEncontradoError(f"Pedido {numero_pedido} não encontrado.")
        return pedido
