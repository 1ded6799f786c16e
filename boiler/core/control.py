#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
质量值调节计算

- adjust_quality: 比例控制，根据实测码率与目标的偏差决定步长
- interpolate_quality: 已有两次完整编码结果时，按线性插值估计下一质量值
"""

import math

from boiler.config.defaults import (
    MIN_QUALITY,
    MAX_QUALITY,
    MIN_QUALITY_STEP,
    MAX_QUALITY_STEP,
    INTERPOLATION_MIN_SPREAD,
)


def round_half_up(value: float) -> int:
    """四舍五入到整数（.5 远离零），与 Python 内置的银行家舍入不同"""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clamp_quality(quality: float) -> float:
    return min(max(quality, MIN_QUALITY), MAX_QUALITY)


def _step_for(distance: float) -> int:
    step = round_half_up(MIN_QUALITY_STEP + (MAX_QUALITY_STEP - MIN_QUALITY_STEP) * distance)
    return max(step, MIN_QUALITY_STEP)


def adjust_quality(quality: int, actual: float, target: float) -> int:
    """
    比例控制：码率偏低时提高质量值，偏高（或恰好相等）时降低质量值

    步长在 1~10 之间，与偏差比例线性相关。偏高一侧的偏差封顶 1.0，
    偏低一侧不封顶；码率恰好等于目标时仍按偏高处理，降低 1。

    Args:
        quality: 当前质量值
        actual: 实测码率
        target: 目标码率

    Returns:
        新的质量值 [0, 100]
    """
    ratio = actual / target
    if actual < target:
        step = _step_for(1 - ratio)
        return int(min(quality + step, MAX_QUALITY))

    step = _step_for(min(ratio - 1, 1.0))
    return int(max(quality - step, MIN_QUALITY))


def interpolate_quality(q1: float, b1: float, q2: float, b2: float, target: float) -> int:
    """
    两点线性插值（割线法）估计命中目标码率的质量值

    质量值与码率单调但非线性，两次完整编码之后用插值修正比例控制
    在相邻两遍之间产生的过冲/欠冲。两点码率过近时斜率不稳定，取两质量值中点。

    Args:
        q1, b1: 第一个点的质量值与码率
        q2, b2: 第二个点的质量值与码率
        target: 目标码率

    Returns:
        质量值 [0, 100]
    """
    midpoint = (q1 + q2) / 2
    if b1 == b2 or abs(b1 - b2) < INTERPOLATION_MIN_SPREAD * target:
        return round_half_up(clamp_quality(midpoint))

    t = (target - b2) / (b1 - b2)
    quality = q2 + (q1 - q2) * t
    if math.isnan(quality):
        quality = midpoint

    return round_half_up(clamp_quality(quality))
