# catalog/models.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InvalidRecord

# Stored record key -> Item attribute
_ITEM_KEYS = {
    "id": "item_id",
    "name": "name",
    "category": "category",
    "price": "price",
    "resellerPrice": "reseller_price",
    "costPrice": "cost_price",
    "stock": "stock",
    "weight": "weight",
    "unit": "unit",
    "status": "status",
    "description": "description",
    "image": "image",
    "images": "images",
    "isFeatured": "is_featured",
    "featuredPrice": "featured_price",
    "isFlashSale": "is_flash_sale",
    "flashSalePrice": "flash_sale_price",
    "createdAt": "created_at",
}
_LEGACY_ITEM_KEYS = {"featured"}

_BATCH_KEYS = {
    "products",
    "totalProducts",
    "minPrice",
    "maxPrice",
    "hasFeatured",
    "hasFlashSale",
    "productIds",
    "revision",
    "updatedAt",
}


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _to_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


@dataclass
class Item:
    """
    Typed catalog entry as stored inside a batch's ``products`` array.

    Prices are integer minor units. Keys the model does not know are kept
    in ``extra`` and written back untouched.
    """
    item_id: str
    name: str
    category: str = "uncategorized"
    price: int = 0
    reseller_price: int = 0
    cost_price: int = 0
    stock: int = 0
    weight: int = 0
    unit: str = "pcs"
    status: str = "ready"
    description: str = ""
    image: str = ""
    images: List[str] = field(default_factory=list)
    is_featured: bool = False
    featured_price: Optional[int] = None
    is_flash_sale: bool = False
    flash_sale_price: Optional[int] = None
    created_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def effective_featured_price(self) -> int:
        return self.featured_price if self.featured_price is not None else self.price

    @property
    def effective_flash_sale_price(self) -> int:
        return self.flash_sale_price if self.flash_sale_price is not None else self.price

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Item":
        if not isinstance(record, dict):
            raise InvalidRecord(f"item record must be an object, got {type(record).__name__}")

        item_id = _to_str(record.get("id"))
        name = _to_str(record.get("name"))
        if not item_id:
            raise InvalidRecord(f"item record without id: {record!r:.120}")
        if not name:
            raise InvalidRecord(f"item {item_id} has no name")

        images = record.get("images")

        return cls(
            item_id=item_id,
            name=name,
            category=_to_str(record.get("category"), "uncategorized"),
            price=_to_int(record.get("price")),
            reseller_price=_to_int(record.get("resellerPrice")),
            cost_price=_to_int(record.get("costPrice")),
            stock=_to_int(record.get("stock")),
            weight=_to_int(record.get("weight")),
            unit=_to_str(record.get("unit"), "pcs"),
            status=_to_str(record.get("status"), "ready"),
            description=record.get("description") or "",
            image=record.get("image") or "",
            images=list(images) if isinstance(images, list) else [],
            # Older records carry a separate "featured" flag
            is_featured=bool(record.get("isFeatured") or record.get("featured")),
            featured_price=_to_optional_int(record.get("featuredPrice")),
            is_flash_sale=bool(record.get("isFlashSale")),
            flash_sale_price=_to_optional_int(record.get("flashSalePrice")),
            created_at=_to_str(record.get("createdAt")),
            extra={
                k: v
                for k, v in record.items()
                if k not in _ITEM_KEYS and k not in _LEGACY_ITEM_KEYS
            },
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = dict(self.extra)
        record.update(
            {
                "id": self.item_id,
                "name": self.name,
                "category": self.category,
                "price": self.price,
                "resellerPrice": self.reseller_price,
                "costPrice": self.cost_price,
                "stock": self.stock,
                "weight": self.weight,
                "unit": self.unit,
                "status": self.status,
                "description": self.description,
                "image": self.image,
                "images": list(self.images),
                "isFeatured": self.is_featured,
                "isFlashSale": self.is_flash_sale,
                "createdAt": self.created_at,
            }
        )
        if self.featured_price is not None:
            record["featuredPrice"] = self.featured_price
        if self.flash_sale_price is not None:
            record["flashSalePrice"] = self.flash_sale_price
        return record


@dataclass
class BatchAggregates:
    """Summary of a batch's items, cached on the batch document for filtering."""
    count: Optional[int] = 0
    min_price: Optional[int] = 0
    max_price: Optional[int] = 0
    has_featured: Optional[bool] = False
    has_flash_sale: Optional[bool] = False
    item_ids: Optional[List[str]] = field(default_factory=list)

    @classmethod
    def compute(cls, items: List[Item]) -> "BatchAggregates":
        if not items:
            return cls()
        prices = [it.price for it in items]
        return cls(
            count=len(items),
            min_price=min(prices),
            max_price=max(prices),
            has_featured=any(it.is_featured for it in items),
            has_flash_sale=any(it.is_flash_sale for it in items),
            item_ids=[it.item_id for it in items],
        )


@dataclass
class Batch:
    batch_id: str
    items: List[Item] = field(default_factory=list)
    aggregates: BatchAggregates = field(default_factory=BatchAggregates)
    revision: int = 0
    updated_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    # Ids whose stored record differed from its canonical form when read
    normalized_ids: List[str] = field(default_factory=list, compare=False)

    @classmethod
    def from_record(cls, batch_id: str, record: Dict[str, Any]) -> "Batch":
        if not isinstance(record, dict):
            raise InvalidRecord(f"batch {batch_id} is not an object")

        raw_items = record.get("products") or []
        if not isinstance(raw_items, list):
            raise InvalidRecord(f"batch {batch_id} 'products' is not a list")

        items: List[Item] = []
        normalized: List[str] = []
        for raw in raw_items:
            try:
                item = Item.from_record(raw)
            except InvalidRecord as e:
                raise InvalidRecord(f"batch {batch_id}: {e}") from e
            if item.to_record() != raw:
                normalized.append(item.item_id)
            items.append(item)

        product_ids = record.get("productIds")
        aggregates = BatchAggregates(
            count=record.get("totalProducts"),
            min_price=record.get("minPrice"),
            max_price=record.get("maxPrice"),
            has_featured=record.get("hasFeatured"),
            has_flash_sale=record.get("hasFlashSale"),
            item_ids=list(product_ids) if isinstance(product_ids, list) else None,
        )

        return cls(
            batch_id=batch_id,
            items=items,
            aggregates=aggregates,
            revision=_to_int(record.get("revision")),
            updated_at=_to_str(record.get("updatedAt")),
            extra={k: v for k, v in record.items() if k not in _BATCH_KEYS},
            normalized_ids=normalized,
        )

    def to_record(self) -> Dict[str, Any]:
        agg = self.aggregates
        record: Dict[str, Any] = dict(self.extra)
        record.update(
            {
                "products": [it.to_record() for it in self.items],
                "totalProducts": agg.count,
                "minPrice": agg.min_price,
                "maxPrice": agg.max_price,
                "hasFeatured": agg.has_featured,
                "hasFlashSale": agg.has_flash_sale,
                "productIds": list(agg.item_ids or []),
                "revision": self.revision,
                "updatedAt": self.updated_at,
            }
        )
        return record

    def refresh_aggregates(self) -> None:
        self.aggregates = BatchAggregates.compute(self.items)

    def aggregates_stale(self) -> bool:
        return self.aggregates != BatchAggregates.compute(self.items)

    def find(self, item_id: str) -> Optional[Item]:
        for it in self.items:
            if it.item_id == item_id:
                return it
        return None


@dataclass
class CatalogIndexEntry:
    """
    Flattened projection of one Item, stored under the item id.
    Holds no timestamps of its own, so projecting the same item twice
    yields an equal entry.
    """
    item_id: str
    batch_id: str
    name: str
    category: str
    price: int
    reseller_price: int
    cost_price: int
    stock: int
    status: str
    weight: int
    unit: str
    image: str
    images: List[str]
    is_featured: bool
    featured_price: int
    is_flash_sale: bool
    flash_sale_price: int
    created_at: str

    @classmethod
    def project(cls, item: Item, batch_id: str) -> "CatalogIndexEntry":
        return cls(
            item_id=item.item_id,
            batch_id=batch_id,
            name=item.name,
            category=item.category,
            price=item.price,
            reseller_price=item.reseller_price,
            cost_price=item.cost_price,
            stock=item.stock,
            status=item.status,
            weight=item.weight,
            unit=item.unit,
            image=item.image,
            images=list(item.images),
            is_featured=item.is_featured,
            featured_price=item.effective_featured_price,
            is_flash_sale=item.is_flash_sale,
            flash_sale_price=item.effective_flash_sale_price,
            created_at=item.created_at,
        )

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CatalogIndexEntry":
        if not isinstance(record, dict) or not record.get("id"):
            raise InvalidRecord(f"index record without id: {record!r:.120}")
        images = record.get("images")
        return cls(
            item_id=str(record["id"]),
            batch_id=_to_str(record.get("batchId")),
            name=_to_str(record.get("name")),
            category=_to_str(record.get("category"), "uncategorized"),
            price=_to_int(record.get("price")),
            reseller_price=_to_int(record.get("resellerPrice")),
            cost_price=_to_int(record.get("costPrice")),
            stock=_to_int(record.get("stock")),
            status=_to_str(record.get("status"), "ready"),
            weight=_to_int(record.get("weight")),
            unit=_to_str(record.get("unit"), "pcs"),
            image=record.get("image") or "",
            images=list(images) if isinstance(images, list) else [],
            is_featured=bool(record.get("isFeatured")),
            featured_price=_to_int(record.get("featuredPrice")),
            is_flash_sale=bool(record.get("isFlashSale")),
            flash_sale_price=_to_int(record.get("flashSalePrice")),
            created_at=_to_str(record.get("createdAt")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.item_id,
            "batchId": self.batch_id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "resellerPrice": self.reseller_price,
            "costPrice": self.cost_price,
            "stock": self.stock,
            "status": self.status,
            "weight": self.weight,
            "unit": self.unit,
            "image": self.image,
            "images": list(self.images),
            "isFeatured": self.is_featured,
            "featuredPrice": self.featured_price,
            "isFlashSale": self.is_flash_sale,
            "flashSalePrice": self.flash_sale_price,
            "createdAt": self.created_at,
        }
