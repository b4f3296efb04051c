# Core modules for gatekeeper.
"""
Core functionality:
- config: Configuration management
- environment: Shared execution environment and search path
"""

from ci_gatekeeper.core.config import PipelineConfig, clear_config_cache, load_config
from ci_gatekeeper.core.environment import Environment

__all__ = ["Environment", "PipelineConfig", "clear_config_cache", "load_config"]
