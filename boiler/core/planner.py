#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
采样片段规划

按视频时长决定采样片段数量与位置：多个片段可以平均掉局部画面复杂度差异，
固定 60 秒片段在迭代耗时和估计精度之间取平衡。
"""

from typing import List, Tuple

from boiler.config.defaults import SAMPLE_DURATION
from boiler.core.models import SampleWindow

# 三片段模式下各片段在时长中的相对位置（开头、中间、结尾）
SAMPLE_POSITIONS = (0.1, 0.5, 0.9)


def plan_samples(
    duration_seconds: float, base_duration: float = SAMPLE_DURATION
) -> Tuple[List[SampleWindow], float]:
    """
    计算采样片段

    - 时长 < 60s: 整段视频作为一个片段
    - 60s ~ 120s: 从 0 开始取一个 60s 片段
    - 120s ~ 180s: 开头和结尾各一个 60s 片段
    - >= 180s: 10%、50%、90% 位置各一个 60s 片段，剩余时长不足时收回

    Args:
        duration_seconds: 视频时长（秒）
        base_duration: 片段基础时长（秒）

    Returns:
        (片段列表, 片段时长)
    """
    if duration_seconds <= 0:
        raise ValueError(f"视频时长必须为正数: {duration_seconds}")

    if duration_seconds < base_duration:
        return [SampleWindow(0, duration_seconds)], duration_seconds

    max_start = duration_seconds - base_duration

    if duration_seconds < base_duration * 2:
        return [SampleWindow(0, base_duration)], base_duration

    if duration_seconds < base_duration * 3:
        starts = [0, max_start]
    else:
        starts = []
        for index, position in enumerate(SAMPLE_POSITIONS):
            start = duration_seconds * position
            if start > max_start:
                # 第一个片段向前收回到开头，其余向后收回到最后一个完整片段
                start = 0 if index == 0 else max_start
            starts.append(start)

    return [SampleWindow(start, base_duration) for start in starts], base_duration
