# cartstore/data/keys.py
from cartstore.utils.settings import CART_KEY_NAMESPACE


class CartKeys:
    """
    Nazwy kluczy w redisie dla jednej przestrzeni nazw:

    - {ns}:skus:{identity}            sorted set, sku -> addTime
    - {ns}:infos:{identity}           hash, goodsId_/count_/addTime_{sku} + couponId/couponAmount
    - {ns}:history:skus:{identity}    to samo po archiwizacji
    - {ns}:history:infos:{identity}
    - {ns}:deadlines                  globalny sorted set, identity -> deadline (ms)

    Zaden prefiks nie jest prefiksem innego, wiec identity -> klucz jest 1:1
    (np. identity "history:x" nie trafi w historie "x").
    """

    GOODS_ID = "goodsId"
    COUNT = "count"
    ADD_TIME = "addTime"
    #kupon trzymany w tym samym hashu co pozycje, wiec idzie do historii razem z nimi
    COUPON_ID = "couponId"
    COUPON_AMOUNT = "couponAmount"

    def __init__(self, namespace: str = CART_KEY_NAMESPACE):
        self.namespace = namespace
        self.deadlines = f"{namespace}:deadlines"

    def skus(self, identity: str) -> str:
        return f"{self.namespace}:skus:{identity}"

    def infos(self, identity: str) -> str:
        return f"{self.namespace}:infos:{identity}"

    def history_skus(self, identity: str) -> str:
        return f"{self.namespace}:history:skus:{identity}"

    def history_infos(self, identity: str) -> str:
        return f"{self.namespace}:history:infos:{identity}"

    #pola w hashu, jeden komplet na sku
    @staticmethod
    def goods_id_field(sku_id: str) -> str:
        return f"{CartKeys.GOODS_ID}_{sku_id}"

    @staticmethod
    def count_field(sku_id: str) -> str:
        return f"{CartKeys.COUNT}_{sku_id}"

    @staticmethod
    def add_time_field(sku_id: str) -> str:
        return f"{CartKeys.ADD_TIME}_{sku_id}"

    @staticmethod
    def item_fields(sku_id: str) -> list[str]:
        return [
            CartKeys.goods_id_field(sku_id),
            CartKeys.count_field(sku_id),
            CartKeys.add_time_field(sku_id),
        ]
