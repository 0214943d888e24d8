from typing import List, Optional


class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    def __init__(self, message="Erro na camada core."):
        self.message = message
        super().__init__(self.message)


# ===============================================
# ERROS DE VALIDAÇÃO E FLUXO DO CHECKOUT
# ===============================================

class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos (corrigível pelo cliente)."""
    def __init__(self, message="Os dados fornecidos são inválidos.", campos: Optional[List[str]] = None):
        self.campos = list(campos or [])
        super().__init__(message)


class PrecondicaoError(BaseErroCore):
    """Erro levantado quando uma pré-condição da operação não é atendida."""
    def __init__(self, message="A operação não pode ser executada no estado atual."):
        super().__init__(message)


class CarrinhoVazioError(PrecondicaoError):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    def __init__(self, message="O carrinho de compras está vazio."):
        super().__init__(message)


class ModificacaoConcorrenteError(BaseErroCore):
    """Erro levantado quando há uma alteração durante uma finalização em andamento."""
    def __init__(self, message="Existe uma finalização de compra em andamento. Aguarde."):
        super().__init__(message)


class TransicaoInvalidaError(BaseErroCore):
    """Erro levantado quando a etapa atual do checkout não permite a operação."""
    def __init__(self, message="A operação não é permitida na etapa atual do checkout."):
        super().__init__(message)


class PagamentoFalhouError(BaseErroCore):
    """Erro levantado quando o Gateway de Pagamento rejeita a transação."""
    def __init__(self, message="A transação de pagamento foi rejeitada ou falhou."):
        super().__init__(message)


class NotificacaoFalhouError(BaseErroCore):
    """Falha ao enviar a confirmação do pedido. O pedido continua válido."""
    def __init__(self, message="Não foi possível enviar a confirmação do pedido."):
        super().__init__(message)


# ===============================================
# ERROS DOS LINKS DE DOWNLOAD
# ===============================================

class LinkDownloadError(BaseErroCore):
    """Base para links que não podem mais ser usados. Procure o suporte."""
    def __init__(self, message="Este link de download não pode mais ser utilizado."):
        super().__init__(message)


class LinkExpiradoError(LinkDownloadError):
    def __init__(self, message="Este link de download expirou."):
        super().__init__(message)


class LinkEsgotadoError(LinkDownloadError):
    def __init__(self, message="Este link de download atingiu o limite de downloads."):
        super().__init__(message)


# ===============================================
# ERROS DE PERSISTÊNCIA E ENTIDADE
# ===============================================

class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    def __init__(self, message="O item solicitado não foi encontrado."):
        super().__init__(message)


class PedidoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro específico para Pedidos não encontrados."""
    def __init__(self, message="O pedido solicitado não foi encontrado."):
        super().__init__(message)


class LinkNaoEncontradoError(ItemNaoEncontradoError):
    """Erro específico para Links de download não encontrados."""
    def __init__(self, message="O link de download não foi encontrado."):
        super().__init__(message)
