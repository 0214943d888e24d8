from django.db import models
from django.utils.text import slugify

# ====================================================================
# Manual (Produto Digital)
# ====================================================================

class Manual(models.Model):
    """Manual digital vendido na loja. O slug é o identificador usado no carrinho."""

    titulo = models.CharField(max_length=255, verbose_name="Título do Manual")
    slug = models.SlugField(max_length=255, unique=True, editable=False)
    descricao = models.TextField(blank=True, verbose_name="Descrição Detalhada")

    preco = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Preço de Venda")
    # Local do arquivo entregue após a compra; vazio usa a URL padrão de download
    url_download = models.URLField(max_length=500, blank=True, verbose_name="URL do Arquivo")
    publicado = models.BooleanField(default=True)

    data_criacao = models.DateTimeField(auto_now_add=True)
    data_atualizacao = models.DateTimeField(auto_now=True, null=True)

    class Meta:
        verbose_name = "Manual"
        verbose_name_plural = "Manuais"
        ordering = ['titulo']
        db_table = 'catalogo_manual'

    def __str__(self):
        return self.titulo

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.titulo)
        super().save(*args, **kwargs)
