#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
目标码率计算

根据视频高度选择码率档位，或使用显式指定的目标码率
"""

import logging
from typing import Dict, Optional

from boiler.config.defaults import DEFAULT_TOLERANCE, TARGET_BITRATE_BY_RESOLUTION
from boiler.core.models import TargetProfile

logger = logging.getLogger(__name__)


def calculate_target_bitrate(
    height: int,
    override_bps: int = 0,
    target_by_resolution: Optional[Dict[int, int]] = None,
) -> int:
    """
    计算目标码率

    Args:
        height: 视频高度（像素）
        override_bps: 显式目标码率，大于 0 时直接使用
        target_by_resolution: 分辨率档位配置，键为高度下限

    Returns:
        目标码率（bps）
    """
    if override_bps and override_bps > 0:
        return int(override_bps)

    if not target_by_resolution:
        target_by_resolution = TARGET_BITRATE_BY_RESOLUTION

    thresholds = sorted(target_by_resolution.keys())
    selected = None
    for threshold in thresholds:
        if height >= threshold:
            selected = threshold

    if selected is None:
        # 低于最低档位时沿用最低档位的目标
        selected = thresholds[0]
        logger.warning(
            f"分辨率 {height}p 低于 {selected}p，使用 {selected}p 目标码率 "
            f"({target_by_resolution[selected] / 1000000:.2f} Mbps)"
        )

    return int(target_by_resolution[selected])


def resolve_target(
    height: int,
    override_bps: int = 0,
    tolerance: float = DEFAULT_TOLERANCE,
    target_by_resolution: Optional[Dict[int, int]] = None,
) -> TargetProfile:
    """根据分辨率或显式码率构建 TargetProfile"""
    bitrate = calculate_target_bitrate(height, override_bps, target_by_resolution)
    return TargetProfile(target_bitrate_bps=bitrate, tolerance_fraction=tolerance)


def bps_to_mbps(bps: float) -> str:
    """码率格式化为两位小数的 Mbps 字符串"""
    return f"{bps / 1000000:.2f}"
