"""SlowAPI rate limiter singleton.

The only limited route is install/start, which is unauthenticated, so
requests are keyed on the client address. X-Forwarded-For is not read
here: behind a proxy, run uvicorn with --proxy-headers and
--forwarded-allow-ips so request.client already holds the real peer.
"""

from slowapi import Limiter
from starlette.requests import Request


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=_client_key, default_limits=[])
