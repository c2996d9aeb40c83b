"""
Utilities Module
================

Common utilities shared across the runtime:
- logger: Leveled, colored logging with context prefixes
- config: Environment-driven configuration
"""

from dinoe.utils.logger import LogLevel, Logger
from dinoe.utils.config import get_config, Config

__all__ = ["LogLevel", "Logger", "get_config", "Config"]
