# src/procedure_logger/core/logging/
# ├─ __init__.py            # public API
# ├─ builder.py             # make_dict_config(settings), setup_logging(settings), default_pipeline_config(settings),
# │                         default_comprehensive_middleware(settings)
# ├─ formatters.py          # JsonFormatter, ColorFormatter
# ├─ filters.py             # RequestIdFilter, RedactFilter (+ contextvar helpers)
# ├─ handlers.py            # dictConfig handler factories (console / rotating files)
# └─ middleware.py          # Starlette middleware setting the request id


from .builder import setup_logging, make_dict_config, default_pipeline_config, default_comprehensive_middleware
from .filters import set_request_id, reset_request_id, get_request_id, RequestIdFilter, RedactFilter
from .middleware import RequestIDMiddleware

__all__ = [
    "setup_logging",
    "make_dict_config",
    "default_pipeline_config",
    "default_comprehensive_middleware",
    "set_request_id",
    "reset_request_id",
    "get_request_id",
    "RequestIdFilter",
    "RedactFilter",
    "RequestIDMiddleware",
]
