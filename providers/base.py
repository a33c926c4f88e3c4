# providers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

Normalized = Dict[str, Any]  # unified structure for internal upsert


@dataclass
class ProductPage:
    items: List[Mapping[str, Any]] = field(default_factory=list)
    page_num: int = 1
    page_size: int = 0
    total: int = 0

    @property
    def has_more(self) -> bool:
        return bool(self.items) and self.page_num * max(self.page_size, 1) < self.total


@dataclass(frozen=True)
class FreightOption:
    name: str
    price: float
    aging: str = ""


class BaseProvider(ABC):
    """
    Supplier clients implement this contract. Every call is expected to go
    through the shared rate limiter and token cache before hitting the wire.
    """

    def __init__(self, credentials: Mapping[str, Any]):
        self.credentials = credentials

    @abstractmethod
    def list_products(self, *, page_num: int = 1, page_size: int = 50, **filters) -> ProductPage:
        raise NotImplementedError

    @abstractmethod
    def get_product_detail(self, pid: str) -> Mapping[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def get_stock(self, pid: str) -> Mapping[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def calculate_freight(
        self,
        *,
        end_country_code: str,
        products: Sequence[Mapping[str, Any]],
        start_country_code: Optional[str] = None,
    ) -> List[FreightOption]:
        raise NotImplementedError

    @abstractmethod
    def get_reviews(self, pid: str, *, page_num: int = 1, page_size: int = 20) -> Mapping[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def create_order(self, **params) -> Any:
        raise NotImplementedError

    @abstractmethod
    def get_tracking(self, order_number: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def map_to_internal(self, raw: Mapping[str, Any]) -> Normalized:
        """
        Returns a normalized payload:
        {
            "product": {"name": "...", "price": ParsedPrice|None, "weight_grams": ..., ...},
            "variants": [{"vid": "...", "name": "...", "price": 10.5, "color": ..., "size": ...}],
            "images": ["https://..."],
            "external": {"external_id": "..."},
            "raw": {...},
        }
        """
        raise NotImplementedError
