from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
import re
import uuid

from topmanuais.core.exceptions import DadosInvalidosError

CENTAVOS = Decimal('0.01')

# Padrão simples de endereço: algo@dominio.tld, sem espaços
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def agora_utc() -> datetime:
    return datetime.now(timezone.utc)


def arredondar(valor: Decimal) -> Decimal:
    """Arredonda valores monetários para centavos."""
    return Decimal(valor).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


# ====================================================================
# ENUMERAÇÕES
# ====================================================================

class MetodoPagamento(str, Enum):
    PIX = 'pix'
    CARTAO_CREDITO = 'credit_card'
    BOLETO = 'boleto'

    @property
    def rotulo(self) -> str:
        return _ROTULOS_PAGAMENTO[self]

    @classmethod
    def parse(cls, valor) -> 'MetodoPagamento':
        """Converte o valor recebido (enum ou string) em um método de pagamento válido."""
        if isinstance(valor, cls):
            return valor
        try:
            return cls(str(valor).strip().lower())
        except ValueError:
            raise DadosInvalidosError(
                f"Forma de pagamento '{valor}' não suportada.", campos=['metodo_pagamento']
            )


_ROTULOS_PAGAMENTO = {
    MetodoPagamento.PIX: 'PIX',
    MetodoPagamento.CARTAO_CREDITO: 'Cartão de Crédito',
    MetodoPagamento.BOLETO: 'Boleto Bancário',
}


class EtapaCheckout(str, Enum):
    COLETANDO_CLIENTE = 'coletando_cliente'
    COLETANDO_PAGAMENTO = 'coletando_pagamento'
    REVISANDO = 'revisando'
    ENVIANDO = 'enviando'
    CONCLUIDO = 'concluido'


class StatusPagamento(str, Enum):
    APROVADO = 'approved'
    RECUSADO = 'rejected'


# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros.
# ====================================================================

@dataclass(frozen=True)
class ItemCatalogo:
    """Manual digital à venda (somente leitura para o core)."""
    id: str
    titulo: str
    preco_unitario: Decimal
    referencia_download: str = ''

    def __post_init__(self):
        if Decimal(self.preco_unitario) < 0:
            raise DadosInvalidosError("O preço do item não pode ser negativo.", campos=['preco_unitario'])


@dataclass
class ItemCarrinho:
    """Entidade que representa um item no carrinho."""
    item: ItemCatalogo
    quantidade: int = 1
    adicionado_em: datetime = field(default_factory=agora_utc)

    @property
    def subtotal(self) -> Decimal:
        """Calcula o subtotal do item."""
        return Decimal(self.item.preco_unitario) * self.quantidade


@dataclass(frozen=True)
class Carrinho:
    """Fotografia do carrinho: itens na ordem de inserção e agregados."""
    itens: Tuple[ItemCarrinho, ...] = ()

    @property
    def total(self) -> Decimal:
        return arredondar(sum((item.subtotal for item in self.itens), Decimal('0')))

    @property
    def quantidade_itens(self) -> int:
        return sum(item.quantidade for item in self.itens)

    @property
    def vazio(self) -> bool:
        return not self.itens


@dataclass
class DadosCliente:
    """Dados do comprador, preenchidos parcialmente durante o checkout."""
    nome: str = ''
    email: str = ''
    telefone: Optional[str] = None
    cpf: Optional[str] = None

    def campos_invalidos(self) -> List[str]:
        """Retorna os campos obrigatórios ausentes ou malformados."""
        campos = []
        if not (self.nome or '').strip():
            campos.append('nome')
        if not EMAIL_PATTERN.match((self.email or '').strip()):
            campos.append('email')
        return campos


@dataclass(frozen=True)
class AutorizacaoPagamento:
    """Resposta do processador de pagamento."""
    aprovado: bool
    referencia: Optional[str] = None


@dataclass(frozen=True)
class ItemPedido:
    """Snapshot de um item no momento da compra (imutável)."""
    item_id: str
    titulo: str
    preco_unitario: Decimal
    quantidade: int
    referencia_download: str = ''

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.preco_unitario) * self.quantidade


@dataclass
class LinkDownload:
    """
    Direito de download de um item comprado.

    Só é alterado pela operação de consumo; nunca é apagado, apenas expira ou se esgota.
    """
    pedido_id: str
    item_id: str
    titulo: str
    referencia_destino: str
    emitido_em: datetime
    expira_em: datetime
    quantidade_downloads: int = 0
    limite_downloads: int = 5
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def downloads_restantes(self) -> int:
        return max(self.limite_downloads - self.quantidade_downloads, 0)

    def expirado(self, agora: datetime) -> bool:
        return agora >= self.expira_em

    def esgotado(self) -> bool:
        return self.quantidade_downloads >= self.limite_downloads

    def utilizavel(self, agora: Optional[datetime] = None) -> bool:
        agora = agora or agora_utc()
        return not self.expirado(agora) and not self.esgotado()


@dataclass(frozen=True)
class DestinoDownload:
    """Local do arquivo liberado por um consumo bem-sucedido."""
    link_id: str
    referencia: str
    downloads_restantes: int


@dataclass(frozen=True)
class Pedido:
    """Entidade do Pedido de Venda. Imutável após a criação."""
    numero_pedido: str
    cliente: DadosCliente
    itens: Tuple[ItemPedido, ...]
    total: Decimal
    metodo_pagamento: MetodoPagamento
    status_pagamento: StatusPagamento = StatusPagamento.APROVADO
    criado_em: datetime = field(default_factory=agora_utc)
    links_download: Tuple[LinkDownload, ...] = ()
    referencia_pagamento: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class MensagemConfirmacao:
    """Conteúdo entregue ao serviço de notificação após um pedido aprovado."""
    nome_cliente: str
    email_cliente: str
    numero_pedido: str
    itens: Tuple[Tuple[str, str], ...]
    total: Decimal

    @classmethod
    def do_pedido(cls, pedido: Pedido) -> 'MensagemConfirmacao':
        return cls(
            nome_cliente=pedido.cliente.nome,
            email_cliente=pedido.cliente.email,
            numero_pedido=pedido.numero_pedido,
            itens=tuple((item.titulo, item.referencia_download) for item in pedido.itens),
            total=pedido.total,
        )


@dataclass
class ResultadoCheckout:
    """Pedido criado e avisos não fatais (ex.: falha no envio do e-mail)."""
    pedido: Pedido
    avisos: List[str] = field(default_factory=list)
