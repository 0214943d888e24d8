"""
Registro das sessões de compra ativas, indexado pela chave de sessão do Django.

Cada comprador possui um carrinho e uma sessão de checkout próprios; nada é
compartilhado entre sessões. O registro vive na memória do processo e descarta
as sessões sem acesso há mais de `ttl_segundos`.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from topmanuais.core.carrinho import CarrinhoCompras
from topmanuais.core.checkout import SessaoCheckout
from topmanuais.core.entities import EtapaCheckout

logger = logging.getLogger(__name__)

TTL_PADRAO_SEGUNDOS = 24 * 60 * 60
INTERVALO_LIMPEZA_SEGUNDOS = 60


@dataclass
class SessaoCompra:
    carrinho: CarrinhoCompras
    checkout: SessaoCheckout
    ultimo_acesso: float = field(default=0.0)


class RegistroSessoesCompra:

    def __init__(
        self,
        fabrica_checkout: Callable[[CarrinhoCompras], SessaoCheckout],
        ttl_segundos: float = TTL_PADRAO_SEGUNDOS,
        intervalo_limpeza: float = INTERVALO_LIMPEZA_SEGUNDOS,
        relogio: Callable[[], float] = time.monotonic,
    ):
        self.fabrica_checkout = fabrica_checkout
        self.ttl_segundos = ttl_segundos
        self.intervalo_limpeza = intervalo_limpeza
        self.relogio = relogio
        self._sessoes: Dict[str, SessaoCompra] = {}
        self._lock = threading.Lock()
        self._ultima_limpeza: Optional[float] = None

    def __len__(self):
        return len(self._sessoes)

    def obter(self, chave: str) -> SessaoCompra:
        """Retorna a sessão de compra da chave, criando-a na primeira visita."""
        agora = self.relogio()
        self._expirar_ociosas(agora)
        with self._lock:
            sessao = self._sessoes.get(chave)
            if sessao is None:
                carrinho = CarrinhoCompras()
                sessao = SessaoCompra(carrinho=carrinho, checkout=self.fabrica_checkout(carrinho))
                self._sessoes[chave] = sessao
            sessao.ultimo_acesso = agora
            return sessao

    def iniciar_novo_checkout_se_concluido(self, chave: str) -> SessaoCompra:
        """Uma sessão concluída não volta a editar dados: a próxima compra começa um checkout novo."""
        sessao = self.obter(chave)
        with self._lock:
            if sessao.checkout.etapa == EtapaCheckout.CONCLUIDO:
                sessao.checkout.desanexar()
                sessao.checkout = self.fabrica_checkout(sessao.carrinho)
                logger.info("Novo checkout iniciado para a sessão %s.", chave)
            return sessao

    def descartar(self, chave: str) -> None:
        with self._lock:
            sessao = self._sessoes.pop(chave, None)
        if sessao is not None:
            sessao.checkout.desanexar()

    def limpar(self) -> None:
        with self._lock:
            self._sessoes.clear()

    def _expirar_ociosas(self, agora: float) -> None:
        """Remove as sessões ociosas; uma finalização em andamento nunca é descartada."""
        with self._lock:
            if self._ultima_limpeza is not None and agora - self._ultima_limpeza < self.intervalo_limpeza:
                return
            self._ultima_limpeza = agora
            ociosas = [
                chave for chave, sessao in self._sessoes.items()
                if agora - sessao.ultimo_acesso > self.ttl_segundos and not sessao.checkout.processando
            ]
            removidas = [self._sessoes.pop(chave) for chave in ociosas]
        for sessao in removidas:
            sessao.checkout.desanexar()
        if removidas:
            logger.info("%s sessão(ões) de compra ociosa(s) descartada(s).", len(removidas))
