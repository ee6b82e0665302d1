from .fallbacks import degrade, future_result_or_default
from .formatters import build_recalled_context_block
from .helpers import IDGenerator

__all__ = [
    "IDGenerator",
    "build_recalled_context_block",
    "degrade",
    "future_result_or_default",
]
