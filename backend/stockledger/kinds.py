from __future__ import annotations

from enum import Enum


class DocumentKind(str, Enum):
    """Every document type that moves stock. Values double as URL/event names."""

    PURCHASE = "purchase"
    SALE = "sale"
    PURCHASE_RETURN = "purchase_return"
    SALE_RETURN = "sale_return"
    STOCK_ADJUSTMENT = "stock_adjustment"
    STOCK_TRANSFER = "stock_transfer"

    @property
    def is_return(self) -> bool:
        return self in (DocumentKind.PURCHASE_RETURN, DocumentKind.SALE_RETURN)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()


# Header + line-item documents handled by the document orchestrator
LINE_ITEM_KINDS = (
    DocumentKind.PURCHASE,
    DocumentKind.SALE,
    DocumentKind.PURCHASE_RETURN,
    DocumentKind.SALE_RETURN,
)
