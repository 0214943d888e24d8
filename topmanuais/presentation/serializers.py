from rest_framework import serializers

from topmanuais.core.entities import MetodoPagamento


# ====================================================================
# SERIALIZERS PARA O CARRINHO
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    """Representação de uma entrada do carrinho (entidade ItemCarrinho)."""
    item_id = serializers.CharField(source='item.id')
    titulo = serializers.CharField(source='item.titulo')
    preco_unitario = serializers.DecimalField(source='item.preco_unitario', max_digits=10, decimal_places=2)
    quantidade = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    adicionado_em = serializers.DateTimeField()


class CarrinhoSerializer(serializers.Serializer):
    """Fotografia do carrinho com total e quantidade de itens."""
    itens = ItemCarrinhoSerializer(many=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantidade_itens = serializers.IntegerField()


class AdicionarItemSerializer(serializers.Serializer):
    item_id = serializers.CharField(max_length=255)


class AtualizarQuantidadeSerializer(serializers.Serializer):
    # Quantidade menor que 1 remove o item
    quantidade = serializers.IntegerField()


# ====================================================================
# SERIALIZERS PARA O CHECKOUT
# ====================================================================

class DadosClienteSerializer(serializers.Serializer):
    """
    Dados parciais do cliente. A validação completa (nome e e-mail) acontece na
    sessão de checkout, que devolve os campos pendentes.
    """
    nome = serializers.CharField(max_length=255, required=False, allow_blank=True)
    email = serializers.CharField(max_length=255, required=False, allow_blank=True)
    telefone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    cpf = serializers.CharField(max_length=14, required=False, allow_blank=True, allow_null=True)


class MetodoPagamentoSerializer(serializers.Serializer):
    METODO_PAGAMENTO_CHOICES = [(m.value, m.rotulo) for m in MetodoPagamento]
    metodo_pagamento = serializers.ChoiceField(choices=METODO_PAGAMENTO_CHOICES)


class SessaoCheckoutSerializer(serializers.Serializer):
    etapa = serializers.CharField(source='etapa.value')
    processando = serializers.BooleanField()
    cliente = DadosClienteSerializer()
    metodo_pagamento = serializers.SerializerMethodField()

    def get_metodo_pagamento(self, obj):
        return obj.metodo_pagamento.value if obj.metodo_pagamento else None


# ====================================================================
# SERIALIZERS PARA PEDIDOS E DOWNLOADS
# ====================================================================

class LinkDownloadSerializer(serializers.Serializer):
    id = serializers.CharField()
    item_id = serializers.CharField()
    titulo = serializers.CharField()
    emitido_em = serializers.DateTimeField()
    expira_em = serializers.DateTimeField()
    quantidade_downloads = serializers.IntegerField()
    limite_downloads = serializers.IntegerField()
    downloads_restantes = serializers.IntegerField()
    utilizavel = serializers.SerializerMethodField()

    def get_utilizavel(self, obj) -> bool:
        return obj.utilizavel()


class ItemPedidoSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    titulo = serializers.CharField()
    preco_unitario = serializers.DecimalField(max_digits=10, decimal_places=2)
    quantidade = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)


class PedidoSerializer(serializers.Serializer):
    id = serializers.CharField()
    numero_pedido = serializers.CharField()
    cliente = DadosClienteSerializer()
    itens = ItemPedidoSerializer(many=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    metodo_pagamento = serializers.CharField(source='metodo_pagamento.value')
    metodo_pagamento_rotulo = serializers.CharField(source='metodo_pagamento.rotulo')
    status_pagamento = serializers.CharField(source='status_pagamento.value')
    criado_em = serializers.DateTimeField()
    links_download = LinkDownloadSerializer(many=True)
