# cartstore/services/cart_service.py
from typing import List, Optional

from cartstore.domain.schemas import CartCoupon, CartItem, CartStatus, ShoppingCart
from cartstore.errors import (
    CartExpiredError,
    CartFullError,
    CartItemNotFoundError,
    CartStoreUnavailable,
    SkuCountLimitError,
    ERROR_CART_EXPIRED,
    ERROR_CART_FULL,
    ERROR_ITEM_NOT_FOUND,
    ERROR_STORE_UNAVAILABLE,
)
from cartstore.repos.cart_repo import CartRepo
from cartstore.utils.retry import redis_retry
from cartstore.utils.settings import CART_MAX_SIZE, CART_MAX_SKU_COUNT, EXPIRE_SWEEP_BATCH
from cartstore.utils.logging import get_logger, safe_identity

logger = get_logger(__name__)


class CartService:
    """
    Use case'y koszyka nad CartRepo.
    commands (add, del, incr, decr, clear) sprawdzaja waznosc koszyka i limity
    query (get_cart) najpierw przenosza przeterminowany koszyk do historii
    """

    def __init__(
        self,
        repo: CartRepo | None = None,
        max_size: int = CART_MAX_SIZE,
        max_sku_count: int = CART_MAX_SKU_COUNT,
    ):
        self.repo = repo or CartRepo()
        self.max_size = max_size
        self.max_sku_count = max_sku_count

    @staticmethod
    def _check(ok: bool, op: str) -> None:
        #repo zwraca False przy bledzie redisa, w serwisie zamieniamy na wyjatek
        if not ok:
            raise CartStoreUnavailable(f"{ERROR_STORE_UNAVAILABLE} ({op})")

    def archive_if_expired(self, identity: str) -> bool:
        """Przeterminowany, niepusty koszyk -> historia. True jesli cos przeniesiono."""
        if self.repo.get_status(identity) == CartStatus.EFFECTIVE:
            return False
        if self.repo.get_item_total(identity) == 0:
            return False

        logger.info(f"Cart {safe_identity(identity)} expired, moving to history")
        self._check(self.repo.to_history(identity), "to_history")
        return True

    def _ensure_effective(self, identity: str) -> None:
        if self.repo.get_status(identity) == CartStatus.NOEFFECTIVE:
            self.archive_if_expired(identity)
            raise CartExpiredError(ERROR_CART_EXPIRED)

    #query - odczyt
    def get_cart(self, identity: str) -> ShoppingCart:
        self.archive_if_expired(identity)

        effective_time = self.repo.get_effective_time(identity)
        items = self.repo.get_item_list(identity)
        coupon = self.repo.get_coupon(identity)

        return ShoppingCart(
            identity=identity,
            status=CartStatus.EFFECTIVE if effective_time > 0 else CartStatus.NOEFFECTIVE,
            effective_time=effective_time,
            item_total=len(items),
            sku_total=sum(i.count for i in items),
            coupon_id=coupon.coupon_id,
            coupon_amount=coupon.coupon_amount,
            items=items,
            history_items=self.repo.get_history_item_list(identity),
        )

    def get_goods_count(self, identity: str, goods_id: str) -> int:
        return sum(i.count for i in self.repo.get_item_list(identity) if i.goods_id == goods_id)

    def get_cart_coupon(self, identity: str) -> CartCoupon:
        self.archive_if_expired(identity)
        return self.repo.get_coupon(identity)

    def get_cart_coupon_id(self, identity: str) -> Optional[str]:
        return self.get_cart_coupon(identity).coupon_id

    #commands
    def add_cart_item(
        self,
        identity: str,
        sku_id: str,
        goods_id: str,
        count: int,
        add_time: int | None = None,
    ) -> CartItem:
        """
        Pozycja i nowy deadline zapisuja sie razem albo wcale.
        Usuniecie sku z historii idzie osobno: CartStoreUnavailable z tego kroku
        znaczy, ze pozycja juz jest w koszyku (ponowne wywolanie doda sztuki drugi raz).
        """
        if count <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")

        self.archive_if_expired(identity)

        current = self.repo.get_item(identity, sku_id)
        is_new = not self.repo.has_item(identity, sku_id)

        if is_new and self.repo.get_item_total(identity) >= self.max_size:
            raise CartFullError(ERROR_CART_FULL)

        if current.count + count > self.max_sku_count:
            raise SkuCountLimitError(self.max_sku_count)

        item = CartItem(
            sku_id=sku_id,
            goods_id=goods_id,
            count=count,
            add_time=add_time if add_time is not None else self.repo.clock(),
        )
        #nowy sku w koszyku -> koszyk wazny znowu pelne TTL od teraz (w tym samym MULTI co insert)
        self._check(self.repo.add_item(identity, item, refresh_deadline=True), "add_item")

        #jak sku wrocil do koszyka to nie trzymamy go juz w historii
        #blad tutaj = pozycja juz zapisana, a sku dalej wisi w historii
        if sku_id in self.repo.get_history_sku_ids(identity):
            self._check(self.repo.del_history_item(identity, sku_id), "del_history_item")

        return self.repo.get_item(identity, sku_id)

    def del_cart_item(self, identity: str, sku_id: str) -> None:
        self._ensure_effective(identity)
        self._remove_item(identity, sku_id)

    def _remove_item(self, identity: str, sku_id: str) -> None:
        self._check(self.repo.del_item(identity, sku_id), "del_item")

        #pusty koszyk nie powinien miec deadline'u
        if self.repo.get_item_total(identity) == 0:
            self._check(self.repo.clear(identity), "clear")

    def incr_cart_sku_count(self, identity: str, sku_id: str, count: int = 1) -> int:
        if count <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")

        self._ensure_effective(identity)

        if not self.repo.has_item(identity, sku_id):
            raise CartItemNotFoundError(ERROR_ITEM_NOT_FOUND)

        item = self.repo.get_item(identity, sku_id)
        if item.count + count > self.max_sku_count:
            raise SkuCountLimitError(self.max_sku_count)

        total = self.repo.incr_sku_count(identity, sku_id, count)
        if total is None:
            raise CartStoreUnavailable(f"{ERROR_STORE_UNAVAILABLE} (incr_sku_count)")
        return total

    def decr_cart_sku_count(self, identity: str, sku_id: str, count: int = 1) -> int:
        """Zmniejsza ilosc, przy zejsciu do zera usuwa sku. Zwraca pozostala ilosc."""
        if count <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")

        self._ensure_effective(identity)

        item = self.repo.get_item(identity, sku_id)
        if item.count <= 0:
            raise CartItemNotFoundError(ERROR_ITEM_NOT_FOUND)

        if item.count <= count:
            self._remove_item(identity, sku_id)
            return 0

        total = self.repo.incr_sku_count(identity, sku_id, -count)
        if total is None:
            raise CartStoreUnavailable(f"{ERROR_STORE_UNAVAILABLE} (incr_sku_count)")
        return total

    def decr_cart_goods_count(self, identity: str, goods_id: str, count: int = 1) -> int:
        """
        Zmniejsza ilosc towaru rozlozona na jego sku, od najstarszego.
        Zwraca ile sztuk faktycznie odjeto.
        """
        if count <= 0:
            raise ValueError("Ilosc musi byc wieksza niz 0")

        self._ensure_effective(identity)

        removed = 0
        for item in self.repo.get_item_list(identity, reverse=False):
            if removed >= count:
                break
            if item.goods_id != goods_id or item.count <= 0:
                continue

            dec = min(item.count, count - removed)
            if dec == item.count:
                self._remove_item(identity, item.sku_id)
            elif self.repo.incr_sku_count(identity, item.sku_id, -dec) is None:
                raise CartStoreUnavailable(f"{ERROR_STORE_UNAVAILABLE} (incr_sku_count)")
            removed += dec

        return removed

    def set_cart_coupon(self, identity: str, coupon_id: str, coupon_amount: float) -> None:
        #kwota tylko zapisywana, nic tu nie liczymy
        if coupon_amount < 0:
            raise ValueError("Kwota kuponu nie moze byc ujemna")

        self._ensure_effective(identity)
        self._check(self.repo.set_coupon(identity, coupon_id, coupon_amount), "set_coupon")

    def reset_effective_time(self, identity: str) -> None:
        self._check(self.repo.set_deadline(identity), "set_deadline")

    def extend_effective_time(self, identity: str, increment_ms: int) -> None:
        self._check(self.repo.incr_effective_time(identity, increment_ms), "incr_effective_time")

    def clear_cart(self, identity: str) -> None:
        self._check(self.repo.clear(identity), "clear")

    def clear_cart_history(self, identity: str) -> None:
        self._check(self.repo.clear_history(identity), "clear_history")

    def del_cart_history_item(self, identity: str, sku_id: str) -> None:
        self._check(self.repo.del_history_item(identity, sku_id), "del_history_item")

    #sprzatanie przeterminowanych koszykow (dla zadania celery)
    @redis_retry()
    def _expired_page(self, before_ms: int, limit: int) -> List[str]:
        return self.repo.get_expired_identities(before_ms, limit)

    def clear_expired(self, now_ms: int | None = None, limit: int = EXPIRE_SWEEP_BATCH) -> int:
        """
        Przenosi do historii wszystkie koszyki z deadline <= now_ms,
        stronami po `limit`. Zwraca liczbe zarchiwizowanych koszykow.
        """
        before_ms = now_ms if now_ms is not None else self.repo.clock()
        archived = 0

        while True:
            identities = self._expired_page(before_ms, limit)
            page_archived = 0
            for identity in identities:
                if self.repo.to_history(identity):
                    page_archived += 1
                else:
                    logger.warning(f"Failed to archive expired cart {safe_identity(identity)}")
            archived += page_archived

            #niepelna strona = koniec, a jak nic sie nie udalo to nie krecimy sie w kolko
            if len(identities) < limit or page_archived == 0:
                break

        return archived
