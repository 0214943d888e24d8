# topmanuais/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Repositorios, Gateways)
DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional
from abc import abstractmethod
from datetime import datetime
from decimal import Decimal

# Importa as Entidades que definem o Contrato de Dados
from topmanuais.core.entities import (
    ItemCatalogo, Pedido, LinkDownload, DestinoDownload, MetodoPagamento,
    AutorizacaoPagamento, MensagemConfirmacao
)


# ====================================================================
# 1. REPOSITÓRIOS (Portas de Persistência)
# ====================================================================

class ICatalogoRepository(Protocol):
    """Consulta somente leitura ao catálogo de manuais."""

    @abstractmethod
    def buscar_por_id(self, item_id: str) -> Optional[ItemCatalogo]: ...


class IPedidoRepository(Protocol):
    """Protocolo para a persistência e consulta de Pedidos."""

    @abstractmethod
    def salvar(self, pedido: Pedido) -> Pedido:
        """
        Grava o pedido, seus itens e seus links de download em uma única transação atômica.
        """
        ...

    @abstractmethod
    def buscar_por_id(self, pedido_id: str) -> Optional[Pedido]: ...

    @abstractmethod
    def buscar_por_numero(self, numero_pedido: str) -> Optional[Pedido]: ...

    @abstractmethod
    def numero_existe(self, numero_pedido: str) -> bool: ...

    @abstractmethod
    def listar(self, termo: Optional[str] = None) -> List[Pedido]:
        """Lista pedidos, filtrando por número, nome ou e-mail do cliente."""
        ...


class ILinkDownloadRepository(Protocol):
    """Protocolo para os links de download emitidos."""

    @abstractmethod
    def listar_por_pedido(self, pedido_id: str) -> List[LinkDownload]: ...

    @abstractmethod
    def buscar_por_id(self, link_id: str) -> Optional[LinkDownload]: ...

    @abstractmethod
    def consumir(self, link_id: str, agora: datetime) -> DestinoDownload:
        """
        Incrementa o contador de forma atômica e devolve o destino do arquivo.
        Levanta LinkExpiradoError / LinkEsgotadoError sem alterar o link.
        """
        ...


# ====================================================================
# 2. GATEWAYS (Portas de Serviços Externos)
# ====================================================================

class IGatewayPagamento(Protocol):
    """Protocolo para serviços externos de processamento de pagamento."""

    @abstractmethod
    async def autorizar(self, metodo: MetodoPagamento, valor: Decimal) -> AutorizacaoPagamento: ...


class INotificadorPedido(Protocol):
    """Protocolo para o envio da confirmação do pedido ao cliente."""

    @abstractmethod
    async def enviar_confirmacao_pedido(self, mensagem: MensagemConfirmacao) -> bool: ...
