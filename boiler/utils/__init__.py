# 工具模块
"""通用工具函数"""

from boiler.utils.logging import setup_logging
from boiler.utils.files import get_video_files, has_skip_marker, resolve_output_paths

__all__ = [
    "setup_logging",
    "get_video_files",
    "has_skip_marker",
    "resolve_output_paths",
]
