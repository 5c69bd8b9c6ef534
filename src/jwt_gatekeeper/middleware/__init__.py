"""
JWT authentication middleware for ASGI and WSGI frameworks.

Re-exports middleware classes for convenient imports:
    from jwt_gatekeeper.middleware import JwtAuthenticationASGIMiddleware
    from jwt_gatekeeper.middleware import JwtAuthenticationWSGIMiddleware
"""

from .wsgi import JwtAuthenticationWSGIMiddleware

__all__: list[str] = ["JwtAuthenticationWSGIMiddleware"]

# ASGI middleware (FastAPI, Starlette)
try:
    from .asgi import JwtAuthenticationASGIMiddleware
    __all__.append("JwtAuthenticationASGIMiddleware")
except ImportError:
    pass
