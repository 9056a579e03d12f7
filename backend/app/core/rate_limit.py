# app/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address

# in-memory storage; point storage_uri at Redis when running several workers
limiter = Limiter(key_func=get_remote_address)
