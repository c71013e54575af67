# cartstore/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2))
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")

CART_KEY_NAMESPACE = os.getenv("CART_KEY_NAMESPACE", "cart")
CART_TTL_MS = int(os.getenv("CART_TTL_MS", 30*60*1000))
CART_MAX_SIZE = int(os.getenv("CART_MAX_SIZE", 20))
CART_MAX_SKU_COUNT = int(os.getenv("CART_MAX_SKU_COUNT", 200))

EXPIRE_SWEEP_INTERVAL_SECONDS = float(os.getenv("EXPIRE_SWEEP_INTERVAL_SECONDS", 60))
EXPIRE_SWEEP_BATCH = int(os.getenv("EXPIRE_SWEEP_BATCH", 1000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
