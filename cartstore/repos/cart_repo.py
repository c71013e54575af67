# cartstore/repos/cart_repo.py
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

import redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from cartstore.data.keys import CartKeys
from cartstore.data.redis_client import get_redis
from cartstore.domain.schemas import CartCoupon, CartItem, CartStatus
from cartstore.errors import CartStoreUnavailable, ERROR_STORE_UNAVAILABLE
from cartstore.utils.settings import CART_TTL_MS
from cartstore.utils.logging import get_logger, safe_identity

logger = get_logger(__name__)

#archiwizacja w lua - rename + zrem jako jedna nieprzerywalna operacja
#MULTI tego nie zalatwi, bo RENAME nieistniejacego klucza zwraca blad
#a reszta komend z MULTI i tak sie wykona (redis nie robi rollbacku)
#historia jest zastepowana w calosci, nie laczona ze stara
_TO_HISTORY_LUA = """
local has_skus = redis.call('EXISTS', KEYS[1]) == 1
local has_infos = redis.call('EXISTS', KEYS[2]) == 1
if has_skus or has_infos then
    redis.call('DEL', KEYS[3], KEYS[4])
    if has_skus then
        redis.call('RENAME', KEYS[1], KEYS[3])
    end
    if has_infos then
        redis.call('RENAME', KEYS[2], KEYS[4])
    end
end
redis.call('ZREM', KEYS[5], ARGV[1])
if has_skus or has_infos then
    return 1
end
return 0
"""

#przedluzenie: odczyt deadline'u i zapis w jednym kroku, inaczej rownolegle
#przedluzenia gubia sie nawzajem. ARGV: identity, teraz (ms), przyrost (ms)
_INCR_DEADLINE_LUA = """
local now = tonumber(ARGV[2])
local base = now
local score = redis.call('ZSCORE', KEYS[1], ARGV[1])
if score and tonumber(score) > now then
    base = tonumber(score)
end
local deadline = base + tonumber(ARGV[3])
redis.call('ZADD', KEYS[1], deadline, ARGV[1])
return deadline
"""


def now_ms() -> int:
    return int(time.time() * 1000)


class CartRepo:
    """
    Koszyk w redisie:
    -sorted set sku (score = addTime) do sortowania i sprawdzania czy sku jest w koszyku
    -hash z polami goodsId_/count_/addTime_ dla kazdego sku
    -globalny sorted set z deadline'ami koszykow (identity -> epoch ms)
    -historia = te same dwa klucze pod innym prefiksem

    Zapisy ida jednym MULTI/EXEC (albo skryptem lua), bez lockow i bez retry.
    Blad redisa przy zapisie -> False, przy odczycie -> CartStoreUnavailable.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        keys: CartKeys | None = None,
        ttl_ms: int = CART_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.redis = client if client is not None else get_redis()
        self.keys = keys or CartKeys()
        self.ttl_ms = ttl_ms
        self.clock = clock

    @contextmanager
    def atomic_batch(self) -> Iterator[Pipeline]:
        """Komendy dodane do pipe ida do redisa jako jedno MULTI/EXEC przy wyjsciu z bloku."""
        with self.redis.pipeline(transaction=True) as pipe:
            yield pipe
            pipe.execute()

    def _unavailable(self, op: str, identity: str, e: Exception) -> CartStoreUnavailable:
        logger.error(f"{op} failed for cart {safe_identity(identity)}: {e}")
        return CartStoreUnavailable(f"{ERROR_STORE_UNAVAILABLE}: {e}")

    # =====================================================
    # ITEMS
    # =====================================================
    def add_item(self, identity: str, item: CartItem, refresh_deadline: bool = False) -> bool:
        """
        Dodaje sku albo doklada sztuk do istniejacego.
        Pierwszy sku w pustym koszyku ustawia deadline na teraz + TTL.
        refresh_deadline=True robi to samo dla kazdego nowego sku, w tym samym MULTI co insert.
        """
        skus_key = self.keys.skus(identity)
        infos_key = self.keys.infos(identity)
        count_field = self.keys.count_field(item.sku_id)

        infos = {self.keys.add_time_field(item.sku_id): item.add_time}
        if item.goods_id is not None:
            infos[self.keys.goods_id_field(item.sku_id)] = item.goods_id

        try:
            #read-then-write, dwa rownolegle pierwsze addy moga oba ustawic deadline (nadpisza sie)
            is_new_sku = not self.redis.hexists(infos_key, count_field)
            is_new_cart = is_new_sku and self.redis.zcard(skus_key) == 0

            with self.atomic_batch() as pipe:
                pipe.zadd(skus_key, {item.sku_id: item.add_time})
                pipe.hset(infos_key, mapping=infos)
                #count sie sumuje, nie nadpisuje
                pipe.hincrby(infos_key, count_field, item.count)
                if is_new_cart or (refresh_deadline and is_new_sku):
                    pipe.zadd(self.keys.deadlines, {identity: self.clock() + self.ttl_ms})
        except RedisError as e:
            logger.error(f"add_item {item.sku_id} failed for cart {safe_identity(identity)}: {e}")
            return False

        logger.info(
            f"Added sku {item.sku_id} x{item.count} to cart {safe_identity(identity)}"
            f"{' (new cart)' if is_new_cart else ''}"
        )
        return True

    def del_item(self, identity: str, sku_id: str) -> bool:
        return self._del_item(identity, self.keys.skus(identity), self.keys.infos(identity), sku_id)

    def get_item(self, identity: str, sku_id: str) -> CartItem:
        return self._get_item(identity, self.keys.infos(identity), sku_id)

    def get_item_list(self, identity: str, reverse: bool = True) -> List[CartItem]:
        return self._get_item_list(identity, self.keys.skus(identity), self.keys.infos(identity), reverse)

    def get_sku_ids(self, identity: str, reverse: bool = True) -> List[str]:
        return self._get_sku_ids(identity, self.keys.skus(identity), reverse)

    def has_item(self, identity: str, sku_id: str) -> bool:
        try:
            return self.redis.zscore(self.keys.skus(identity), sku_id) is not None
        except RedisError as e:
            raise self._unavailable("has_item", identity, e) from e

    def get_item_total(self, identity: str) -> int:
        try:
            return self.redis.zcard(self.keys.skus(identity))
        except RedisError as e:
            raise self._unavailable("get_item_total", identity, e) from e

    def get_sku_total(self, identity: str) -> int:
        infos_key = self.keys.infos(identity)
        try:
            sku_ids = self.redis.zrange(self.keys.skus(identity), 0, -1)
            if not sku_ids:
                return 0
            counts = self.redis.hmget(infos_key, [self.keys.count_field(s) for s in sku_ids])
        except RedisError as e:
            raise self._unavailable("get_sku_total", identity, e) from e

        return sum(int(c) for c in counts if c is not None)

    def incr_sku_count(self, identity: str, sku_id: str, delta: int) -> Optional[int]:
        """
        HINCRBY na count_{sku}, zwraca nowa ilosc.
        None = blad redisa (0 to poprawny wynik, np. po odjeciu wszystkiego).
        """
        try:
            return self.redis.hincrby(self.keys.infos(identity), self.keys.count_field(sku_id), delta)
        except RedisError as e:
            logger.error(f"incr_sku_count {sku_id} failed for cart {safe_identity(identity)}: {e}")
            return None

    def clear(self, identity: str) -> bool:
        try:
            with self.atomic_batch() as pipe:
                pipe.delete(self.keys.skus(identity))
                pipe.delete(self.keys.infos(identity))
                pipe.zrem(self.keys.deadlines, identity)
        except RedisError as e:
            logger.error(f"clear failed for cart {safe_identity(identity)}: {e}")
            return False

        logger.info(f"Cart {safe_identity(identity)} cleared")
        return True

    # =====================================================
    # COUPON
    # =====================================================
    def set_coupon(self, identity: str, coupon_id: str, coupon_amount: float) -> bool:
        """Kupon nadpisuje poprzedni. Siedzi w hashu infos, wiec clear go usuwa a to_history przenosi."""
        mapping = {self.keys.COUPON_ID: coupon_id, self.keys.COUPON_AMOUNT: coupon_amount}
        try:
            self.redis.hset(self.keys.infos(identity), mapping=mapping)
        except RedisError as e:
            logger.error(f"set_coupon failed for cart {safe_identity(identity)}: {e}")
            return False

        logger.info(f"Coupon {coupon_id} set on cart {safe_identity(identity)}")
        return True

    def get_coupon(self, identity: str) -> CartCoupon:
        return self._get_coupon(identity, self.keys.infos(identity))

    def get_history_coupon(self, identity: str) -> CartCoupon:
        return self._get_coupon(identity, self.keys.history_infos(identity))

    # =====================================================
    # EXPIRY
    # =====================================================
    def _get_deadline(self, identity: str) -> int:
        score = self.redis.zscore(self.keys.deadlines, identity)
        return round(score) if score is not None else 0

    def get_effective_time(self, identity: str) -> int:
        try:
            deadline = self._get_deadline(identity)
        except RedisError as e:
            raise self._unavailable("get_effective_time", identity, e) from e
        return max(deadline - self.clock(), 0)

    def get_status(self, identity: str) -> CartStatus:
        if self.get_effective_time(identity) > 0:
            return CartStatus.EFFECTIVE
        return CartStatus.NOEFFECTIVE

    def incr_effective_time(self, identity: str, increment_ms: int) -> bool:
        """Przedluzenie zawsze od max(teraz, deadline) - przeterminowany koszyk liczy od teraz."""
        now = self.clock()
        try:
            self.redis.eval(_INCR_DEADLINE_LUA, 1, self.keys.deadlines, identity, now, increment_ms)
        except RedisError as e:
            logger.error(f"incr_effective_time failed for cart {safe_identity(identity)}: {e}")
            return False
        return True

    def set_deadline(self, identity: str, deadline_ms: int | None = None) -> bool:
        """Ustawia deadline na sztywno, domyslnie teraz + TTL."""
        if deadline_ms is None:
            deadline_ms = self.clock() + self.ttl_ms
        try:
            self.redis.zadd(self.keys.deadlines, {identity: deadline_ms})
        except RedisError as e:
            logger.error(f"set_deadline failed for cart {safe_identity(identity)}: {e}")
            return False
        return True

    def get_expired_identities(self, before_ms: int | None = None, limit: int = 1000) -> List[str]:
        """Identity koszykow z deadline <= before_ms, najstarsze pierwsze (dla zadania czyszczacego)."""
        if before_ms is None:
            before_ms = self.clock()
        try:
            return self.redis.zrangebyscore(self.keys.deadlines, "-inf", before_ms, start=0, num=limit)
        except RedisError as e:
            raise self._unavailable("get_expired_identities", "*", e) from e

    # =====================================================
    # HISTORY
    # =====================================================
    def to_history(self, identity: str) -> bool:
        try:
            moved = self.redis.eval(
                _TO_HISTORY_LUA,
                5,
                self.keys.skus(identity),
                self.keys.infos(identity),
                self.keys.history_skus(identity),
                self.keys.history_infos(identity),
                self.keys.deadlines,
                identity,
            )
        except RedisError as e:
            logger.error(f"to_history failed for cart {safe_identity(identity)}: {e}")
            return False

        if moved:
            logger.info(f"Cart {safe_identity(identity)} moved to history")
        return True

    def clear_history(self, identity: str) -> bool:
        try:
            with self.atomic_batch() as pipe:
                pipe.delete(self.keys.history_skus(identity))
                pipe.delete(self.keys.history_infos(identity))
        except RedisError as e:
            logger.error(f"clear_history failed for cart {safe_identity(identity)}: {e}")
            return False
        return True

    def del_history_item(self, identity: str, sku_id: str) -> bool:
        return self._del_item(
            identity, self.keys.history_skus(identity), self.keys.history_infos(identity), sku_id
        )

    def get_history_item(self, identity: str, sku_id: str) -> CartItem:
        return self._get_item(identity, self.keys.history_infos(identity), sku_id)

    def get_history_item_list(self, identity: str, reverse: bool = True) -> List[CartItem]:
        return self._get_item_list(
            identity, self.keys.history_skus(identity), self.keys.history_infos(identity), reverse
        )

    def get_history_sku_ids(self, identity: str, reverse: bool = True) -> List[str]:
        return self._get_sku_ids(identity, self.keys.history_skus(identity), reverse)

    # =====================================================
    # wspolne dla koszyka i historii
    # =====================================================
    def _del_item(self, identity: str, skus_key: str, infos_key: str, sku_id: str) -> bool:
        try:
            with self.atomic_batch() as pipe:
                pipe.zrem(skus_key, sku_id)
                pipe.hdel(infos_key, *self.keys.item_fields(sku_id))
        except RedisError as e:
            logger.error(f"del_item {sku_id} failed for {skus_key}: {e}")
            return False

        logger.info(f"Removed sku {sku_id} from cart {safe_identity(identity)}")
        return True

    def _get_item(self, identity: str, infos_key: str, sku_id: str) -> CartItem:
        try:
            goods_id, count, add_time = self.redis.hmget(infos_key, self.keys.item_fields(sku_id))
        except RedisError as e:
            raise self._unavailable("get_item", identity, e) from e
        return self._to_item(sku_id, goods_id, count, add_time)

    def _get_coupon(self, identity: str, infos_key: str) -> CartCoupon:
        try:
            coupon_id, coupon_amount = self.redis.hmget(
                infos_key, [self.keys.COUPON_ID, self.keys.COUPON_AMOUNT]
            )
        except RedisError as e:
            raise self._unavailable("get_coupon", identity, e) from e
        return CartCoupon(
            coupon_id=coupon_id,
            coupon_amount=float(coupon_amount) if coupon_amount is not None else 0,
        )

    def _get_sku_ids(self, identity: str, skus_key: str, reverse: bool) -> List[str]:
        try:
            if reverse:
                return self.redis.zrevrange(skus_key, 0, -1)
            return self.redis.zrange(skus_key, 0, -1)
        except RedisError as e:
            raise self._unavailable("get_sku_ids", identity, e) from e

    def _get_item_list(self, identity: str, skus_key: str, infos_key: str, reverse: bool) -> List[CartItem]:
        sku_ids = self._get_sku_ids(identity, skus_key, reverse)
        if not sku_ids:
            return []

        fields = []
        for sku_id in sku_ids:
            fields.extend(self.keys.item_fields(sku_id))
        try:
            values = self.redis.hmget(infos_key, fields)
        except RedisError as e:
            raise self._unavailable("get_item_list", identity, e) from e

        #po 3 wartosci na sku, w kolejnosci z item_fields
        return [
            self._to_item(sku_id, *values[i * 3:i * 3 + 3])
            for i, sku_id in enumerate(sku_ids)
        ]

    @staticmethod
    def _to_item(sku_id: str, goods_id, count, add_time) -> CartItem:
        return CartItem(
            sku_id=sku_id,
            goods_id=goods_id,
            count=int(count) if count is not None else 0,
            add_time=int(add_time) if add_time is not None else 0,
        )
