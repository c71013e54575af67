# cartstore/domain/schemas.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CartStatus(str, Enum):
    EFFECTIVE = "EFFECTIVE"
    NOEFFECTIVE = "NOEFFECTIVE"


class CartItem(BaseModel):
    """Jedna pozycja koszyka (jeden sku)."""

    sku_id: str = Field(..., min_length=1, description="ID sku, unikalne w koszyku")
    goods_id: Optional[str] = Field(None, description="ID towaru")
    count: int = Field(0, description="Laczna ilosc sztuk")
    add_time: int = Field(0, ge=0, description="Czas dodania (epoch ms)")


class CartCoupon(BaseModel):
    coupon_id: Optional[str] = None
    coupon_amount: float = 0


class ShoppingCart(BaseModel):
    """Widok calego koszyka (response)."""

    identity: str
    status: CartStatus
    effective_time: int = Field(0, ge=0, description="Pozostaly czas waznosci (ms)")
    item_total: int = 0
    sku_total: int = 0
    coupon_id: Optional[str] = None
    coupon_amount: float = 0
    items: List[CartItem] = Field(default_factory=list)
    history_items: List[CartItem] = Field(default_factory=list)
