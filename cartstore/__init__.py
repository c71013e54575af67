"""Koszyk w redisie: pozycje, liczniki sku, deadline'y i historia."""
from cartstore.domain.schemas import CartCoupon, CartItem, CartStatus, ShoppingCart
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService

__all__ = [
    "CartCoupon",
    "CartItem",
    "CartStatus",
    "ShoppingCart",
    "CartRepo",
    "CartService",
]
