"""
Camada de Infraestrutura: Implementação de Repositórios.

Esta camada traduz as operações abstratas definidas nas Interfaces da Core
em chamadas concretas ao framework (Django ORM).
"""
from datetime import datetime
from typing import List, Optional
import logging
import uuid

from django.db.models import Q, F, Prefetch
from django.db import transaction

# Importação Lenta (Lazy Loading) para Modelos Django
from django.apps import apps

# Importações da Camada CORE (ENTIDADES e INTERFACES)
from topmanuais.core.entities import ItemCatalogo, Pedido, LinkDownload, DestinoDownload
from topmanuais.core.ports import (
    ICatalogoRepository,
    IPedidoRepository,
    ILinkDownloadRepository,
)
from topmanuais.core.exceptions import (
    LinkExpiradoError,
    LinkEsgotadoError,
    LinkNaoEncontradoError,
)

from .mappers import ManualMapper, PedidoMapper, ItemPedidoMapper, LinkDownloadMapper

logger = logging.getLogger(__name__)


# ====================================================================
# REPOSITÓRIOS (Implementação Django ORM)
# ====================================================================

# Helper para Lazy Loading
def get_model(app_label, model_name):
    """Busca o modelo Django de forma segura (Lazy Loading)."""
    return apps.get_model(app_label, model_name)


def _uuid_valido(valor: str) -> bool:
    try:
        uuid.UUID(str(valor))
        return True
    except ValueError:
        return False


class CatalogoRepositoryDjango(ICatalogoRepository):
    """Leitura do catálogo de manuais publicados."""

    @property
    def ManualModel(self):
        return get_model('catalog', 'Manual')

    def buscar_por_id(self, item_id: str) -> Optional[ItemCatalogo]:
        try:
            model = self.ManualModel.objects.get(slug=item_id, publicado=True)
            return ManualMapper.to_entity(model)
        except self.ManualModel.DoesNotExist:
            return None


class PedidoRepositoryDjango(IPedidoRepository):
    """Implementação do PedidoRepository usando o Django ORM."""

    @property
    def PedidoModel(self):
        return get_model('vendas', 'Pedido')

    @property
    def ItemPedidoModel(self):
        return get_model('vendas', 'ItemPedido')

    @property
    def LinkDownloadModel(self):
        return get_model('vendas', 'LinkDownload')

    def _queryset(self):
        return self.PedidoModel.objects.prefetch_related(
            Prefetch('itens', queryset=self.ItemPedidoModel.objects.order_by('posicao')),
            Prefetch('links_download', queryset=self.LinkDownloadModel.objects.order_by('posicao')),
        )

    @transaction.atomic
    def salvar(self, pedido: Pedido) -> Pedido:
        """Cria o pedido, seus itens e seus links em uma única transação."""
        pedido_model = PedidoMapper.to_model(pedido)
        pedido_model.save(force_insert=True)

        self.ItemPedidoModel.objects.bulk_create([
            ItemPedidoMapper.to_model(item, pedido_model, posicao)
            for posicao, item in enumerate(pedido.itens)
        ])
        self.LinkDownloadModel.objects.bulk_create([
            LinkDownloadMapper.to_model(link, pedido_model, posicao)
            for posicao, link in enumerate(pedido.links_download)
        ])
        logger.info("Pedido %s gravado com %s link(s).", pedido.numero_pedido, len(pedido.links_download))
        return self.buscar_por_id(pedido.id)

    def buscar_por_id(self, pedido_id: str) -> Optional[Pedido]:
        if not _uuid_valido(pedido_id):
            return None
        try:
            return PedidoMapper.to_entity(self._queryset().get(pk=pedido_id))
        except self.PedidoModel.DoesNotExist:
            return None

    def buscar_por_numero(self, numero_pedido: str) -> Optional[Pedido]:
        try:
            return PedidoMapper.to_entity(self._queryset().get(numero_pedido=numero_pedido))
        except self.PedidoModel.DoesNotExist:
            return None

    def numero_existe(self, numero_pedido: str) -> bool:
        return self.PedidoModel.objects.filter(numero_pedido=numero_pedido).exists()

    def listar(self, termo: Optional[str] = None) -> List[Pedido]:
        qs = self._queryset()
        if termo:
            qs = qs.filter(
                Q(numero_pedido__icontains=termo)
                | Q(nome_cliente__icontains=termo)
                | Q(email_cliente__icontains=termo)
            )
        return [PedidoMapper.to_entity(model) for model in qs]


class LinkDownloadRepositoryDjango(ILinkDownloadRepository):
    """Links de download com consumo atômico via UPDATE condicional."""

    @property
    def LinkDownloadModel(self):
        return get_model('vendas', 'LinkDownload')

    def listar_por_pedido(self, pedido_id: str) -> List[LinkDownload]:
        if not _uuid_valido(pedido_id):
            return []
        qs = self.LinkDownloadModel.objects.filter(pedido_id=pedido_id).order_by('posicao')
        return [LinkDownloadMapper.to_entity(model) for model in qs]

    def buscar_por_id(self, link_id: str) -> Optional[LinkDownload]:
        if not _uuid_valido(link_id):
            return None
        try:
            return LinkDownloadMapper.to_entity(self.LinkDownloadModel.objects.get(pk=link_id))
        except self.LinkDownloadModel.DoesNotExist:
            return None

    @transaction.atomic
    def consumir(self, link_id: str, agora: datetime) -> DestinoDownload:
        """
        O incremento só acontece se o link ainda estiver dentro do prazo e do limite,
        na mesma instrução UPDATE. Duas requisições simultâneas nunca ocupam a mesma vaga.
        """
        if not _uuid_valido(link_id):
            raise LinkNaoEncontradoError()

        atualizados = self.LinkDownloadModel.objects.filter(
            pk=link_id,
            expira_em__gt=agora,
            quantidade_downloads__lt=F('limite_downloads'),
        ).update(quantidade_downloads=F('quantidade_downloads') + 1)

        link = self.buscar_por_id(link_id)
        if link is None:
            raise LinkNaoEncontradoError()
        if not atualizados:
            if link.expirado(agora):
                logger.warning("Link %s expirado em %s.", link_id, link.expira_em)
                raise LinkExpiradoError()
            logger.warning("Link %s atingiu o limite de %s downloads.", link_id, link.limite_downloads)
            raise LinkEsgotadoError()

        return DestinoDownload(
            link_id=link.id,
            referencia=link.referencia_destino,
            downloads_restantes=link.downloads_restantes,
        )
