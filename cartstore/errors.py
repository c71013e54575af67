# cartstore/errors.py
"""
Bledy domeny koszyka.

Dziedzicza po wbudowanych ValueError/RuntimeError, wiec kod ktory
lapie ValueError/RuntimeError (jak w warstwie serwisow) dalej dziala.
"""

ERROR_STORE_UNAVAILABLE = "Cart store unavailable"
ERROR_CART_FULL = "Shopping cart is full"
ERROR_CART_EXPIRED = "Shopping cart expired"
ERROR_SKU_COUNT_LIMIT = "The goods can only buy {limit} pieces at most"
ERROR_ITEM_NOT_FOUND = "Item not found in shopping cart"


class CartError(Exception):
    pass


class CartStoreUnavailable(CartError, RuntimeError):
    """Redis nie odpowiada (polaczenie / transport)."""


class CartFullError(CartError, ValueError):
    pass


class SkuCountLimitError(CartError, ValueError):
    def __init__(self, limit: int):
        super().__init__(ERROR_SKU_COUNT_LIMIT.format(limit=limit))
        self.limit = limit


class CartExpiredError(CartError, RuntimeError):
    pass


class CartItemNotFoundError(CartError, ValueError):
    pass
