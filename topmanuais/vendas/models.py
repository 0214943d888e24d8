import uuid

from django.db import models
from decimal import Decimal


class Pedido(models.Model):
    """
    Modelo que representa um pedido/venda no sistema.
    Os dados do cliente são gravados como snapshot, sem conta de usuário.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    numero_pedido = models.CharField(max_length=32, unique=True)

    # Cliente
    nome_cliente = models.CharField(max_length=255)
    email_cliente = models.EmailField()
    telefone_cliente = models.CharField(max_length=20, blank=True, null=True)
    cpf_cliente = models.CharField(max_length=14, blank=True, null=True)

    # Pagamento
    METODO_PAGAMENTO_CHOICES = [
        ('pix', 'PIX'),
        ('credit_card', 'Cartão de Crédito'),
        ('boleto', 'Boleto Bancário'),
    ]
    STATUS_PAGAMENTO_CHOICES = [
        ('approved', 'Aprovado'),
        ('rejected', 'Recusado'),
    ]
    metodo_pagamento = models.CharField(max_length=20, choices=METODO_PAGAMENTO_CHOICES)
    status_pagamento = models.CharField(max_length=20, choices=STATUS_PAGAMENTO_CHOICES, default='approved')
    referencia_pagamento = models.CharField(max_length=100, blank=True, null=True)

    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    data_pedido = models.DateTimeField()

    class Meta:
        verbose_name = 'Pedido'
        verbose_name_plural = 'Pedidos'
        db_table = 'vendas_pedido'
        ordering = ['-data_pedido']

    def __str__(self):
        return f"Pedido {self.numero_pedido} - {self.email_cliente}"


class ItemPedido(models.Model):
    """
    Modelo que representa um item dentro de um pedido.
    Mantém um snapshot dos dados do manual no momento da compra.
    """
    pedido = models.ForeignKey(Pedido, related_name='itens', on_delete=models.CASCADE)
    posicao = models.PositiveIntegerField(default=0)

    # Snapshot dos dados do produto
    item_id = models.CharField(max_length=255)
    titulo = models.CharField(max_length=255)
    preco_unitario = models.DecimalField(max_digits=10, decimal_places=2)
    quantidade = models.PositiveIntegerField()
    referencia_download = models.CharField(max_length=500, blank=True)

    class Meta:
        verbose_name = 'Item do Pedido'
        verbose_name_plural = 'Itens do Pedido'
        db_table = 'vendas_item_pedido'
        ordering = ['posicao']

    def __str__(self):
        return f"{self.quantidade}x {self.titulo} em Pedido {self.pedido.numero_pedido}"

    @property
    def subtotal(self):
        return self.preco_unitario * self.quantidade


class LinkDownload(models.Model):
    """Link de download emitido para um item do pedido (prazo e limite de usos)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pedido = models.ForeignKey(Pedido, related_name='links_download', on_delete=models.CASCADE)
    posicao = models.PositiveIntegerField(default=0)

    item_id = models.CharField(max_length=255)
    titulo = models.CharField(max_length=255)
    referencia_destino = models.CharField(max_length=500)

    emitido_em = models.DateTimeField()
    expira_em = models.DateTimeField()
    quantidade_downloads = models.PositiveIntegerField(default=0)
    limite_downloads = models.PositiveIntegerField(default=5)

    class Meta:
        verbose_name = 'Link de Download'
        verbose_name_plural = 'Links de Download'
        db_table = 'vendas_link_download'
        ordering = ['posicao']

    def __str__(self):
        return f"{self.titulo} ({self.quantidade_downloads}/{self.limite_downloads})"
