"""Shared helpers: logging setup and comparison primitives."""

from .indicators import compare, crosses_above, crosses_below
from .logger import Logger, get_logger, setup_logging

__all__ = [
    'compare',
    'crosses_above',
    'crosses_below',
    'Logger',
    'get_logger',
    'setup_logging',
]
