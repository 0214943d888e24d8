"""
Repositórios em memória que implementam as mesmas portas dos repositórios Django.
Usados pelos testes do core e em execuções sem banco de dados.
"""
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from topmanuais.core.entities import ItemCatalogo, Pedido, LinkDownload, DestinoDownload
from topmanuais.core.exceptions import LinkNaoEncontradoError
from topmanuais.core.pedidos import EmissorPedidos
from topmanuais.core.ports import ICatalogoRepository, IPedidoRepository, ILinkDownloadRepository


class CatalogoMemoria(ICatalogoRepository):

    def __init__(self, itens: Iterable[ItemCatalogo] = ()):
        self._itens: Dict[str, ItemCatalogo] = {item.id: item for item in itens}

    def buscar_por_id(self, item_id: str) -> Optional[ItemCatalogo]:
        return self._itens.get(item_id)


class PedidoRepositoryMemoria(IPedidoRepository):
    """Guarda os pedidos e registra seus links no repositório de links informado."""

    def __init__(self, link_repo: Optional['LinkDownloadRepositoryMemoria'] = None):
        self._pedidos: Dict[str, Pedido] = {}
        self._lock = threading.Lock()
        self.link_repo = link_repo

    def salvar(self, pedido: Pedido) -> Pedido:
        with self._lock:
            if self.numero_existe(pedido.numero_pedido):
                raise ValueError(f"Número de pedido duplicado: {pedido.numero_pedido}")
            self._pedidos[pedido.id] = pedido
        if self.link_repo is not None:
            self.link_repo.registrar(pedido.links_download)
        return pedido

    def buscar_por_id(self, pedido_id: str) -> Optional[Pedido]:
        return self._pedidos.get(pedido_id)

    def buscar_por_numero(self, numero_pedido: str) -> Optional[Pedido]:
        return next((p for p in self._pedidos.values() if p.numero_pedido == numero_pedido), None)

    def numero_existe(self, numero_pedido: str) -> bool:
        return any(p.numero_pedido == numero_pedido for p in self._pedidos.values())

    def listar(self, termo: Optional[str] = None) -> List[Pedido]:
        pedidos = sorted(self._pedidos.values(), key=lambda p: p.criado_em, reverse=True)
        if not termo:
            return pedidos
        termo = termo.lower()
        return [
            p for p in pedidos
            if termo in p.numero_pedido.lower()
            or termo in p.cliente.nome.lower()
            or termo in p.cliente.email.lower()
        ]


class LinkDownloadRepositoryMemoria(ILinkDownloadRepository):
    """O consumo é delegado ao emissor, que serializa as chamadas por link."""

    def __init__(self, emissor: Optional[EmissorPedidos] = None):
        self._links: Dict[str, LinkDownload] = {}
        self.emissor = emissor or EmissorPedidos()

    def registrar(self, links: Iterable[LinkDownload]) -> None:
        for link in links:
            self._links[link.id] = link

    def listar_por_pedido(self, pedido_id: str) -> List[LinkDownload]:
        return [link for link in self._links.values() if link.pedido_id == pedido_id]

    def buscar_por_id(self, link_id: str) -> Optional[LinkDownload]:
        return self._links.get(link_id)

    def consumir(self, link_id: str, agora: datetime) -> DestinoDownload:
        link = self._links.get(link_id)
        if link is None:
            raise LinkNaoEncontradoError()
        return self.emissor.consumir(link, agora)
