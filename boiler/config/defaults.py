#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
默认配置常量

定义程序的默认配置值、码率档位和质量搜索参数
"""

# ============================================================
# 路径配置
# ============================================================
DEFAULT_INPUT_FOLDER = "./input"
DEFAULT_OUTPUT_FOLDER = "./output"
DEFAULT_LOG_FOLDER = "./logs"

# ============================================================
# 码率配置
# ============================================================
# 目标码率容差（±5%）
DEFAULT_TOLERANCE = 0.05

# 根据分辨率的目标码率（bps）
# 键为视频高度下限，取不超过实际高度的最高一档；低于最低档时使用最低档
TARGET_BITRATE_BY_RESOLUTION = {
    1080: 8000000,  # 1080p 及以下: 8 Mbps
    2160: 11000000,  # 4K 及以上: 11 Mbps
}

# ============================================================
# 质量搜索配置
# ============================================================
# VideoToolbox -q:v 取值范围
MIN_QUALITY = 0
MAX_QUALITY = 100

# 起始质量值（比从低端开始收敛更快）
START_QUALITY = 60

# 比例调节步长
MIN_QUALITY_STEP = 1
MAX_QUALITY_STEP = 10

# 采样片段基础时长（秒）
SAMPLE_DURATION = 60

# 采样搜索的迭代上限（防止振荡检测遗漏导致死循环）
MAX_SEARCH_ITERATIONS = 200

# 完整编码最多尝试次数
MAX_PASSES = 3

# 两点码率差小于目标的该比例时，插值斜率不可靠，改用中点
INTERPOLATION_MIN_SPREAD = 0.01

# ============================================================
# 编码器配置
# ============================================================
DEFAULT_ENCODER = "hevc_videotoolbox"

# ============================================================
# 文件配置
# ============================================================
KEEP_STRUCTURE_FLAG = True
DEFAULT_MAX_DEPTH = 1

# 文件名中带有这些标记的视频视为已处理，跳过
SKIP_MARKERS = (".hbrk.", ".fmpg.", ".orig.")

# 输出文件后缀（带 .fmpg. 标记，再次运行时会被跳过）
OUTPUT_SUFFIX = ".fmpg.mp4"

# ============================================================
# 支持的视频格式
# ============================================================
SUPPORTED_VIDEO_EXTENSIONS = (
    ".mp4",
    ".mkv",
    ".avi",
    ".mov",
    ".m4v",
    ".webm",
    ".flv",
    ".wmv",
)

# ============================================================
# 返回值常量
# ============================================================
RESULT_SUCCESS = "SUCCESS"
RESULT_SKIP_MARKER = "SKIP_MARKER"
RESULT_SKIP_EXISTS = "SKIP_EXISTS"
RESULT_SKIP_BITRATE = "SKIP_BITRATE"
RESULT_ERROR = "ERROR"

# ============================================================
# 默认配置字典（用于配置加载）
# ============================================================
DEFAULT_CONFIG = {
    "paths": {
        "input": DEFAULT_INPUT_FOLDER,
        "output": DEFAULT_OUTPUT_FOLDER,
        "log": DEFAULT_LOG_FOLDER,
    },
    "encoding": {
        "encoder": DEFAULT_ENCODER,
        "target": {
            "override_bps": 0,
            "tolerance": DEFAULT_TOLERANCE,
            "by_resolution": TARGET_BITRATE_BY_RESOLUTION,
        },
    },
    "search": {
        "start_quality": START_QUALITY,
        "sample_duration": SAMPLE_DURATION,
        "max_iterations": MAX_SEARCH_ITERATIONS,
    },
    "files": {
        "keep_structure": KEEP_STRUCTURE_FLAG,
        "skip_existing": True,
        "skip_markers": list(SKIP_MARKERS),
        "max_depth": DEFAULT_MAX_DEPTH,
        "skip_below_target": True,
    },
    "logging": {
        "level": "INFO",
        "plain": False,
        "json_console": False,
        "print_cmd": False,
    },
}
