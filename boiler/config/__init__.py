# 配置模块
"""配置加载和管理"""

from boiler.config.loader import (
    load_config,
    apply_cli_overrides,
    deep_merge,
    validate_config,
)
from boiler.config.defaults import (
    DEFAULT_CONFIG,
    SUPPORTED_VIDEO_EXTENSIONS,
    TARGET_BITRATE_BY_RESOLUTION,
)

__all__ = [
    "load_config",
    "apply_cli_overrides",
    "deep_merge",
    "validate_config",
    "DEFAULT_CONFIG",
    "SUPPORTED_VIDEO_EXTENSIONS",
    "TARGET_BITRATE_BY_RESOLUTION",
]
