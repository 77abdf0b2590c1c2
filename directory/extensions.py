"""
Shared client instances — Redis connection for the RQ ingestion queue.

redis.from_url() does not connect until first use, so importing this module
is safe without a running Redis (tests, CLI dry runs).
"""
import redis

from directory.config import REDIS_URL

# RQ stores pickled job payloads, so responses must stay as bytes.
redis_client = redis.from_url(REDIS_URL)
