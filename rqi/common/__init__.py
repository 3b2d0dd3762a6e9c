"""
Common utilities of the RQI package.

**Logging and Monitoring:**
- Logger with console/file output, indentation levels and colors
- One global logger per process

Example:
    >>> from rqi.common import get_global_logger
    >>> logger = get_global_logger()
    >>> logger.info("message", lvl=1)
"""

import  importlib
from    typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .flog          import Logger, Colors, get_global_logger

# Lazy loading registry
_LAZY_IMPORTS = {
    'Logger'                    : ('.flog', 'Logger'),
    'Colors'                    : ('.flog', 'Colors'),
    'get_global_logger'         : ('.flog', 'get_global_logger'),
}

def __getattr__(name: str):
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_path, attr_name = _LAZY_IMPORTS[name]
    return getattr(importlib.import_module(module_path, package=__name__), attr_name)

__all__ = list(_LAZY_IMPORTS.keys())
