# topmanuais/core/carrinho.py
"""
Carrinho de compras em memória, pertencente a uma única sessão do comprador.

Cada manual aparece no máximo uma vez; o total e a quantidade são sempre
recalculados a partir dos itens atuais.
"""
import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, List

from topmanuais.core.entities import Carrinho, ItemCarrinho, ItemCatalogo
from topmanuais.core.exceptions import ModificacaoConcorrenteError

logger = logging.getLogger(__name__)

Observador = Callable[[Carrinho], None]


class CarrinhoCompras:
    """Armazena os itens que o comprador pretende levar."""

    def __init__(self):
        # dict preserva a ordem de inserção
        self._itens: Dict[str, ItemCarrinho] = {}
        self._observadores: List[Observador] = []
        self._travado = False
        self._lock = threading.RLock()

    # ----------------------------------------------------------------
    # Consultas
    # ----------------------------------------------------------------

    def contem(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._itens

    def snapshot(self) -> Carrinho:
        with self._lock:
            return Carrinho(itens=tuple(replace(item) for item in self._itens.values()))

    @property
    def travado(self) -> bool:
        return self._travado

    # ----------------------------------------------------------------
    # Mutações
    # ----------------------------------------------------------------

    def adicionar(self, item: ItemCatalogo) -> bool:
        """
        Adiciona o manual com quantidade 1.
        Retorna False (sem erro) quando ele já está no carrinho.
        """
        with self._lock:
            self._verificar_destravado()
            if item.id in self._itens:
                logger.info("Este manual já está no carrinho: %s", item.id)
                return False
            self._itens[item.id] = ItemCarrinho(item=item, quantidade=1)
        logger.info("%s adicionado ao carrinho.", item.titulo)
        self._notificar()
        return True

    def remover(self, item_id: str) -> None:
        with self._lock:
            self._verificar_destravado()
            removido = self._itens.pop(item_id, None)
        if removido is not None:
            logger.info("%s removido do carrinho.", removido.item.titulo)
            self._notificar()

    def definir_quantidade(self, item_id: str, quantidade: int) -> None:
        """Quantidade menor que 1 equivale a remover o item."""
        if quantidade < 1:
            self.remover(item_id)
            return
        with self._lock:
            self._verificar_destravado()
            item = self._itens.get(item_id)
            if item is None:
                return
            item.quantidade = quantidade
        self._notificar()

    def limpar(self) -> None:
        with self._lock:
            self._verificar_destravado()
            self._itens.clear()
        logger.info("Carrinho esvaziado.")
        self._notificar()

    # ----------------------------------------------------------------
    # Trava usada durante a finalização da compra
    # ----------------------------------------------------------------

    def travar(self) -> None:
        with self._lock:
            self._travado = True

    def destravar(self) -> None:
        with self._lock:
            self._travado = False

    def _verificar_destravado(self):
        if self._travado:
            raise ModificacaoConcorrenteError(
                "O carrinho não pode ser alterado enquanto o pagamento está em processamento."
            )

    # ----------------------------------------------------------------
    # Observadores
    # ----------------------------------------------------------------

    def observar(self, callback: Observador) -> None:
        self._observadores.append(callback)

    def remover_observador(self, callback: Observador) -> None:
        if callback in self._observadores:
            self._observadores.remove(callback)

    def _notificar(self):
        snapshot = self.snapshot()
        for callback in list(self._observadores):
            callback(snapshot)
