# Configuração da interface administrativa do Django para os modelos do TopManuais.

from django.contrib import admin
from topmanuais.catalog.models import Manual
from topmanuais.vendas.models import Pedido, ItemPedido, LinkDownload


# ====================================================================
# 1. ADMIN PARA PRODUTOS (MANUAIS)
# ====================================================================

@admin.register(Manual)
class ManualAdmin(admin.ModelAdmin):
    list_display = ('titulo', 'slug', 'preco', 'publicado', 'data_criacao')
    list_filter = ('publicado',)
    search_fields = ('titulo', 'descricao')
    list_editable = ('preco', 'publicado')


# ====================================================================
# 2. ADMIN PARA PEDIDOS (somente leitura: pedidos nunca são alterados)
# ====================================================================

class ItemPedidoInline(admin.TabularInline):
    model = ItemPedido
    extra = 0
    can_delete = False
    readonly_fields = ('titulo', 'item_id', 'preco_unitario', 'quantidade', 'referencia_download')
    exclude = ('posicao',)


class LinkDownloadInline(admin.TabularInline):
    model = LinkDownload
    extra = 0
    can_delete = False
    readonly_fields = ('titulo', 'emitido_em', 'expira_em', 'quantidade_downloads', 'limite_downloads')
    exclude = ('posicao', 'item_id', 'referencia_destino')


@admin.register(Pedido)
class PedidoAdmin(admin.ModelAdmin):
    list_display = ('numero_pedido', 'nome_cliente', 'email_cliente', 'total',
                    'metodo_pagamento', 'status_pagamento', 'data_pedido')
    list_filter = ('status_pagamento', 'metodo_pagamento')
    search_fields = ('numero_pedido', 'nome_cliente', 'email_cliente')
    readonly_fields = [f.name for f in Pedido._meta.fields]
    inlines = [ItemPedidoInline, LinkDownloadInline]

    def has_add_permission(self, request):
        return False
