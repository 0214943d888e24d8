"""
Mapeadores (Mappers) para converter entre:
1. Modelos do Django ORM
2. Entidades de Domínio (topmanuais.core.entities)
"""
from decimal import Decimal
from typing import List

from django.apps import apps
from django.conf import settings

# Importa as entidades do Core
from topmanuais.core.entities import (
    ItemCatalogo as ItemCatalogoEntity,
    DadosCliente as DadosClienteEntity,
    Pedido as PedidoEntity,
    ItemPedido as ItemPedidoEntity,
    LinkDownload as LinkDownloadEntity,
    MetodoPagamento,
    StatusPagamento,
)


# ====================================================================
# Uso de apps.get_model para evitar dependências circulares
# ====================================================================

def get_model(app_label: str, model_name: str):
    """Retorna um modelo do Django de forma segura (lazy loading)."""
    return apps.get_model(app_label, model_name)


class ManualMapper:

    @staticmethod
    def to_entity(model) -> ItemCatalogoEntity:
        referencia = model.url_download or f"{settings.DOWNLOAD_BASE_URL.rstrip('/')}/{model.slug}"
        return ItemCatalogoEntity(
            id=model.slug,
            titulo=model.titulo,
            preco_unitario=Decimal(model.preco),
            referencia_download=referencia,
        )


class LinkDownloadMapper:

    @staticmethod
    def to_entity(model) -> LinkDownloadEntity:
        return LinkDownloadEntity(
            id=str(model.id),
            pedido_id=str(model.pedido_id),
            item_id=model.item_id,
            titulo=model.titulo,
            referencia_destino=model.referencia_destino,
            emitido_em=model.emitido_em,
            expira_em=model.expira_em,
            quantidade_downloads=model.quantidade_downloads,
            limite_downloads=model.limite_downloads,
        )

    @staticmethod
    def to_model(entity: LinkDownloadEntity, pedido_model, posicao: int = 0):
        LinkModel = get_model('vendas', 'LinkDownload')
        return LinkModel(
            id=entity.id,
            pedido=pedido_model,
            posicao=posicao,
            item_id=entity.item_id,
            titulo=entity.titulo,
            referencia_destino=entity.referencia_destino,
            emitido_em=entity.emitido_em,
            expira_em=entity.expira_em,
            quantidade_downloads=entity.quantidade_downloads,
            limite_downloads=entity.limite_downloads,
        )


class ItemPedidoMapper:

    @staticmethod
    def to_entity(model) -> ItemPedidoEntity:
        return ItemPedidoEntity(
            item_id=model.item_id,
            titulo=model.titulo,
            preco_unitario=Decimal(model.preco_unitario),
            quantidade=model.quantidade,
            referencia_download=model.referencia_download,
        )

    @staticmethod
    def to_model(entity: ItemPedidoEntity, pedido_model, posicao: int = 0):
        ItemModel = get_model('vendas', 'ItemPedido')
        return ItemModel(
            pedido=pedido_model,
            posicao=posicao,
            item_id=entity.item_id,
            titulo=entity.titulo,
            preco_unitario=entity.preco_unitario,
            quantidade=entity.quantidade,
            referencia_download=entity.referencia_download,
        )


class PedidoMapper:
    """Converte o Pedido com itens e links. Os related devem estar pré-carregados."""

    @staticmethod
    def to_entity(model) -> PedidoEntity:
        itens: List[ItemPedidoEntity] = [ItemPedidoMapper.to_entity(i) for i in model.itens.all()]
        links: List[LinkDownloadEntity] = [LinkDownloadMapper.to_entity(l) for l in model.links_download.all()]
        return PedidoEntity(
            id=str(model.id),
            numero_pedido=model.numero_pedido,
            cliente=DadosClienteEntity(
                nome=model.nome_cliente,
                email=model.email_cliente,
                telefone=model.telefone_cliente,
                cpf=model.cpf_cliente,
            ),
            itens=tuple(itens),
            total=Decimal(model.total),
            metodo_pagamento=MetodoPagamento(model.metodo_pagamento),
            status_pagamento=StatusPagamento(model.status_pagamento),
            criado_em=model.data_pedido,
            links_download=tuple(links),
            referencia_pagamento=model.referencia_pagamento,
        )

    @staticmethod
    def to_model(entity: PedidoEntity):
        PedidoModel = get_model('vendas', 'Pedido')
        return PedidoModel(
            id=entity.id,
            numero_pedido=entity.numero_pedido,
            nome_cliente=entity.cliente.nome,
            email_cliente=entity.cliente.email,
            telefone_cliente=entity.cliente.telefone,
            cpf_cliente=entity.cliente.cpf,
            metodo_pagamento=entity.metodo_pagamento.value,
            status_pagamento=entity.status_pagamento.value,
            referencia_pagamento=entity.referencia_pagamento,
            total=entity.total,
            data_pedido=entity.criado_em,
        )
