#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
质量值搜索

对采样片段反复编码、测量，用比例控制调整质量值，直到平均码率落入容差区间。
比例控制在容差区间夹在两个相邻整数质量值之间时会来回振荡，
检测到长度为 2 或 3 的循环后，取循环中最接近目标的质量值结束搜索。
"""

import os
import logging
import tempfile
from statistics import mean
from typing import List, Optional, Sequence, Tuple

from boiler.config.defaults import START_QUALITY, MAX_SEARCH_ITERATIONS
from boiler.core.control import adjust_quality
from boiler.core.encoder import remove_quietly
from boiler.core.errors import BoilerError
from boiler.core.models import (
    QualityAttempt,
    SampleWindow,
    SearchHistory,
    SearchResult,
    StopReason,
    TargetProfile,
    VideoAsset,
)
from boiler.core.target import bps_to_mbps

logger = logging.getLogger(__name__)

# 检测的循环长度
CYCLE_LENGTHS = (2, 3)


def detect_cycle(history: SearchHistory) -> Optional[Tuple[QualityAttempt, ...]]:
    """
    检测最近的质量值是否形成循环（A,B,A 或 A,B,C,A）

    最新一次的质量值与 L 次之前相同、且中间的 L 个质量值互不相同时视为长度 L 的循环。

    Returns:
        循环涉及的最近 L+1 次尝试，未检测到时返回 None
    """
    qualities = history.qualities()
    for length in CYCLE_LENGTHS:
        if len(qualities) < length + 1:
            continue
        if qualities[-1] != qualities[-1 - length]:
            continue
        cycle = qualities[-length:]
        if len(set(cycle)) == length:
            return history.recent(length + 1)
    return None


def pick_closest(attempts: Sequence[QualityAttempt], target_bps: float) -> QualityAttempt:
    """取码率与目标平方距离最小的尝试，相同时取最近一次"""
    best = None
    best_distance = None
    for attempt in reversed(attempts):
        distance = (attempt.measured_bitrate_bps - target_bps) ** 2
        if best is None or distance < best_distance:
            best = attempt
            best_distance = distance
    return best


def sample_path(work_dir: str, asset: VideoAsset, index: int) -> str:
    stem = os.path.splitext(os.path.basename(asset.path))[0]
    return os.path.join(work_dir, f"tmp_{stem}_sample_{index}.mp4")


def measure_samples(
    asset: VideoAsset,
    windows: List[SampleWindow],
    quality: int,
    encoder,
    probe,
    work_dir: str,
    iteration: int,
) -> float:
    """
    以指定质量值依次编码所有采样片段，返回平均码率

    每个片段测量后立即删除（失败时同样删除）。
    """
    bitrates = []
    for index, window in enumerate(windows, 1):
        output = sample_path(work_dir, asset, index)
        stage = f"采样第 {iteration} 轮, 片段 {index}/{len(windows)}"
        try:
            encoder.encode_sample(
                asset.path,
                window.start_offset_seconds,
                window.duration_seconds,
                quality,
                output,
            )
            bitrate = probe.measure(output, window.duration_seconds)
        except BoilerError as e:
            e.with_stage(stage)
            raise
        finally:
            remove_quietly(output)

        logger.debug(
            f"片段 {index}/{len(windows)} @ {window.start_offset_seconds:g}s: "
            f"{bps_to_mbps(bitrate)} Mbps",
            extra={"file": os.path.basename(asset.path), "iteration": iteration},
        )
        bitrates.append(bitrate)

    return mean(bitrates)


def find_quality(
    asset: VideoAsset,
    target: TargetProfile,
    windows: List[SampleWindow],
    encoder,
    probe,
    start_quality: int = START_QUALITY,
    max_iterations: int = MAX_SEARCH_ITERATIONS,
    work_dir: Optional[str] = None,
) -> SearchResult:
    """
    搜索使采样平均码率落入容差区间的质量值

    Args:
        asset: 源视频
        target: 目标码率
        windows: 采样片段
        encoder: 编码器（需提供 encode_sample）
        probe: 码率测量（需提供 measure）
        start_quality: 起始质量值
        max_iterations: 迭代上限
        work_dir: 采样片段临时目录，默认使用系统临时目录

    Returns:
        SearchResult
    """
    if work_dir is None:
        with tempfile.TemporaryDirectory(prefix="boiler_") as tmp_dir:
            return find_quality(
                asset, target, windows, encoder, probe,
                start_quality=start_quality,
                max_iterations=max_iterations,
                work_dir=tmp_dir,
            )

    history = SearchHistory()
    quality = start_quality
    name = os.path.basename(asset.path)

    logger.info(
        f"开始质量搜索: {len(windows)} 个采样片段, 目标 {bps_to_mbps(target.target_bitrate_bps)} Mbps "
        f"[{bps_to_mbps(target.lower_bound)} - {bps_to_mbps(target.upper_bound)}]",
        extra={"file": name, "phase": "search"},
    )

    while True:
        iteration = len(history) + 1
        candidate = measure_samples(asset, windows, quality, encoder, probe, work_dir, iteration)
        history.append(QualityAttempt(quality, candidate))

        ctx = {"file": name, "phase": "search", "iteration": iteration, "quality": quality}
        logger.info(f"第 {iteration} 轮: 质量 {quality} -> 平均 {bps_to_mbps(candidate)} Mbps", extra=ctx)

        if target.contains(candidate):
            logger.info(f"采样码率已落入容差区间，质量值 {quality}", extra=ctx)
            return SearchResult(quality, history, StopReason.CONVERGED)

        cycle = detect_cycle(history)
        if cycle is not None:
            best = pick_closest(cycle, target.target_bitrate_bps)
            logger.info(
                f"检测到质量值振荡 {[a.quality_value for a in cycle]}，"
                f"选用最接近目标的质量值 {best.quality_value} "
                f"({bps_to_mbps(best.measured_bitrate_bps)} Mbps)",
                extra=ctx,
            )
            return SearchResult(best.quality_value, history, StopReason.OSCILLATION)

        next_quality = adjust_quality(quality, candidate, target.target_bitrate_bps)
        if next_quality == quality:
            logger.warning(f"质量值已到边界 {quality}，无法继续调整", extra=ctx)
            return SearchResult(quality, history, StopReason.BOUND_SATURATED)

        if len(history) >= max_iterations:
            logger.warning(
                f"采样搜索 {max_iterations} 轮仍未收敛，使用最后一次的质量值 {quality}",
                extra=ctx,
            )
            return SearchResult(quality, history, StopReason.ITERATION_CAP)

        direction = "偏低，提高" if candidate < target.target_bitrate_bps else "偏高，降低"
        logger.debug(f"码率{direction}质量值 {quality} -> {next_quality}", extra=ctx)
        quality = next_quality
