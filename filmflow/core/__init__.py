"""
Filmflow Core Module

Contains core systems including configuration, constants, exceptions,
logging and retry utilities.
"""

from .config import FilmflowConfig, load_config, get_config, set_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger
from .retry import RetryConfig, CircuitBreaker, retry_async_call, calculate_delay

__all__ = [
    'FilmflowConfig',
    'load_config',
    'get_config',
    'set_config',
    'setup_logging',
    'get_logger',
    'RetryConfig',
    'CircuitBreaker',
    'retry_async_call',
    'calculate_delay',
]
