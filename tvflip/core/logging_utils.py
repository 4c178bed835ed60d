"""Logging utilities for tvflip.

Provides a consistent logger hierarchy and formatting without modifying the
process root logger. All tvflip code should obtain loggers via get_logger().
"""
from __future__ import annotations

import logging
import sys
from typing import Optional, Union

_FORMAT = logging.Formatter('%(levelname)s %(name)s: %(message)s')


def _ensure_tvflip_root() -> logging.Logger:
    """Ensure the 'tvflip' logger has a single stream handler and is isolated
    from the process root logger. Returns the 'tvflip' logger.
    """
    root = logging.getLogger('tvflip')
    # The package __init__ installs a NullHandler; replace it with a real one
    has_non_null = any(not isinstance(h, logging.NullHandler) for h in root.handlers)
    if not has_non_null:
        for h in list(root.handlers):
            if isinstance(h, logging.NullHandler):
                root.removeHandler(h)
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_FORMAT)
        root.addHandler(handler)
    root.propagate = False
    return root


def _to_level(level: Union[str, int, None], default: int = logging.INFO) -> int:
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else default


def configure_logging(level: Union[str, int] = 'INFO') -> None:
    """Configure the level of the 'tvflip' logger family.

    This does NOT modify the process root logger.
    """
    root = _ensure_tvflip_root()
    root.setLevel(_to_level(level))


def get_logger(name: str, level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Return a configured logger under the 'tvflip' namespace.

    If a level is provided, it sets the logger's level; otherwise the logger
    is set to NOTSET so it inherits from the 'tvflip' parent configured via
    configure_logging().
    """
    _ensure_tvflip_root()
    log = logging.getLogger(name)
    if level is not None:
        log.setLevel(_to_level(level))
    else:
        log.setLevel(logging.NOTSET)
    return log


__all__ = ['get_logger', 'configure_logging']
