"""Cross-cutting utilities (lowest dependency layer).

    - Unified logging (logging_config)
    - YAML I/O (fs)

No module in utils/ may import from the other pathr subpackages.
"""

from . import fs
from . import logging_config
from .logging_config import get_logger, pop_context, push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'setup_logging',
    'get_logger',
    'push_context',
    'pop_context',
]
