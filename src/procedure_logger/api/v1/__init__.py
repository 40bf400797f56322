from .error_handlers import register_exception_handlers
from .rpc import build_rpc_router

__all__ = ["build_rpc_router", "register_exception_handlers"]
