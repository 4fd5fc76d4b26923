# app/modules/sales/catalog.py
"""
Catálogo en memoria (productos y clientes) y búsqueda aproximada por código
o nombre.

Puntaje de coincidencia, de mayor a menor:

1. código exacto
2. el código empieza con la consulta (menos caracteres sobrantes, más puntaje)
3. el código contiene la consulta (cuanto antes aparece, más puntaje)
4. el nombre contiene la consulta (misma regla de posición)

Los empates se resuelven por el orden del catálogo.
"""
import logging
import unicodedata
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .repository import SalesRepository
from .schemas import Client, Product

logger = logging.getLogger(__name__)

EXACT_CODE = 400
CODE_PREFIX = 300
CODE_CONTAINS = 200
NAME_CONTAINS = 100
TIER_SPAN = 99
SCORE_FLOOR = 0


def normalize_text(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold().strip()


def match_score(product: Product, query: str) -> int:
    q = normalize_text(query)
    if not q:
        return SCORE_FLOOR
    code = normalize_text(product.code)
    if code:
        if code == q:
            return EXACT_CODE
        if code.startswith(q):
            return CODE_PREFIX - min(len(code) - len(q), TIER_SPAN)
        position = code.find(q)
        if position >= 0:
            return CODE_CONTAINS - min(position, TIER_SPAN)
    position = normalize_text(product.name).find(q)
    if position >= 0:
        return NAME_CONTAINS - min(position, TIER_SPAN)
    return SCORE_FLOOR


class CatalogCache:
    def __init__(self, repository: SalesRepository):
        self.repository = repository
        self._products: List[Product] = []
        self._products_by_id: Dict[int, Product] = {}
        self._clients: List[Client] = []
        self.refreshed_at: Optional[datetime] = None

    async def refresh(self) -> None:
        """Recargar productos y clientes; si falla se conserva la foto anterior"""
        products = await self.repository.get_products()
        clients = await self.repository.get_clients()
        self.load(products, clients)
        logger.info(f"Catálogo actualizado: {len(products)} productos, {len(clients)} clientes")

    def load(self, products: List[Product], clients: Optional[List[Client]] = None) -> None:
        self._products = list(products)
        self._products_by_id = {p.id: p for p in self._products}
        if clients is not None:
            self._clients = list(clients)
        self.refreshed_at = datetime.now(timezone.utc)

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    @property
    def clients(self) -> List[Client]:
        return list(self._clients)

    def product(self, product_id: Optional[int]) -> Optional[Product]:
        if product_id is None:
            return None
        return self._products_by_id.get(product_id)

    def client(self, client_id: int) -> Optional[Client]:
        return next((c for c in self._clients if c.id == client_id), None)

    def best_match(self, query: str) -> Optional[Product]:
        best, best_score = None, SCORE_FLOOR
        for product in self._products:
            score = match_score(product, query)
            if score > best_score:
                best, best_score = product, score
        return best

    def search(self, query: str, limit: int = 10) -> List[Product]:
        scored = [(match_score(p, query), p) for p in self._products]
        ranked = sorted((item for item in scored if item[0] > SCORE_FLOOR), key=lambda item: -item[0])
        return [p for _, p in ranked[:limit]]

    def low_stock(self) -> List[Product]:
        """Lista de compras: productos ordenados por stock - stock mínimo"""
        return sorted(self._products, key=lambda p: p.stock - p.min_stock)
