# boiler - 按目标码率自动调节质量值的批量转码器
"""
boiler 包

VideoToolbox 硬件编码器只提供相对质量值 (-q:v)，没有按码率定量的模式。
本包通过采样搜索和最多三遍完整编码，让输出码率落在目标码率的容差区间内。

主要模块:
- config: 配置加载
- core: 采样规划、质量搜索、多遍编码
- utils: 日志、文件、进程管理
"""

__version__ = "1.0.0"

from boiler.config import load_config, apply_cli_overrides
from boiler.core import run_passes, transcode_to_target, find_quality, plan_samples
from boiler.service import run_batch

__all__ = [
    "__version__",
    "load_config",
    "apply_cli_overrides",
    "run_passes",
    "transcode_to_target",
    "find_quality",
    "plan_samples",
    "run_batch",
]
