#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
多遍完整编码

采样码率与完整编码码率存在偏差，因此最多进行三遍完整编码：
1. 采样搜索得到的质量值
2. 按第一遍实测码率比例调整
3. 用前两遍结果线性插值

每遍都是对整个视频编码，代价高昂；第三遍之后无论是否命中都结束，只报告偏差。
"""

import os
import logging
from typing import List, Optional

from boiler.config.defaults import MAX_PASSES, START_QUALITY, MAX_SEARCH_ITERATIONS, SAMPLE_DURATION
from boiler.core.control import adjust_quality, interpolate_quality
from boiler.core.encoder import remove_quietly
from boiler.core.errors import BoilerError
from boiler.core.models import (
    PassRecord,
    SampleWindow,
    TargetProfile,
    TranscodeOutcome,
    VideoAsset,
)
from boiler.core.planner import plan_samples
from boiler.core.search import find_quality
from boiler.core.target import bps_to_mbps

logger = logging.getLogger(__name__)


def default_output_path(asset: VideoAsset) -> str:
    directory = os.path.dirname(os.path.abspath(asset.path))
    stem = os.path.splitext(os.path.basename(asset.path))[0]
    return os.path.join(directory, f"tmp_{stem}.fmpg.mp4")


def encode_pass(
    asset: VideoAsset,
    pass_number: int,
    quality: int,
    encoder,
    probe,
    output_path: str,
) -> PassRecord:
    """完整编码一遍并测量码率，失败时删除不完整的输出"""
    name = os.path.basename(asset.path)
    logger.info(
        f"第 {pass_number} 遍完整编码: 质量 {quality}",
        extra={"file": name, "phase": "pass", "pass": pass_number, "quality": quality},
    )
    finished = False
    try:
        encoder.encode_full(asset.path, quality, output_path)
        bitrate = probe.measure(output_path, asset.duration_seconds)
        finished = True
    except BoilerError as e:
        e.with_stage(f"第 {pass_number} 遍编码")
        raise
    finally:
        if not finished:
            remove_quietly(output_path)

    logger.info(
        f"第 {pass_number} 遍结果: {bps_to_mbps(bitrate)} Mbps",
        extra={"file": name, "phase": "pass", "pass": pass_number, "quality": quality},
    )
    return PassRecord(pass_number, quality, bitrate)


def next_pass_quality(passes: List[PassRecord], target: TargetProfile) -> int:
    """第二遍用比例调整，第三遍用前两遍插值"""
    target_bps = target.target_bitrate_bps
    if len(passes) == 1:
        first = passes[0]
        return adjust_quality(first.quality_value, first.measured_bitrate_bps, target_bps)

    first, second = passes[0], passes[1]
    return interpolate_quality(
        first.quality_value,
        first.measured_bitrate_bps,
        second.quality_value,
        second.measured_bitrate_bps,
        target_bps,
    )


def run_passes(
    asset: VideoAsset,
    target: TargetProfile,
    encoder,
    probe,
    windows: Optional[List[SampleWindow]] = None,
    output_path: Optional[str] = None,
    start_quality: int = START_QUALITY,
    max_iterations: int = MAX_SEARCH_ITERATIONS,
    sample_duration: float = SAMPLE_DURATION,
    work_dir: Optional[str] = None,
) -> TranscodeOutcome:
    """
    运行采样搜索与最多三遍完整编码

    Args:
        asset: 源视频
        target: 目标码率
        encoder: 编码器（encode_sample / encode_full）
        probe: 码率测量（measure）
        windows: 采样片段，默认按时长规划
        output_path: 完整编码输出路径，每遍覆盖上一遍
        start_quality: 采样搜索起始质量值
        max_iterations: 采样搜索迭代上限
        sample_duration: 采样片段基础时长
        work_dir: 采样片段临时目录

    Returns:
        TranscodeOutcome
    """
    if windows is None:
        windows, _ = plan_samples(asset.duration_seconds, sample_duration)
    if output_path is None:
        output_path = default_output_path(asset)

    name = os.path.basename(asset.path)
    search = find_quality(
        asset, target, windows, encoder, probe,
        start_quality=start_quality,
        max_iterations=max_iterations,
        work_dir=work_dir,
    )

    passes: List[PassRecord] = []
    quality = search.quality
    while True:
        record = encode_pass(asset, len(passes) + 1, quality, encoder, probe, output_path)
        passes.append(record)

        if target.contains(record.measured_bitrate_bps):
            logger.info(
                f"第 {record.pass_number} 遍码率落入容差区间 "
                f"({bps_to_mbps(record.measured_bitrate_bps)} Mbps)",
                extra={"file": name, "phase": "pass", "pass": record.pass_number},
            )
            break

        if len(passes) >= MAX_PASSES:
            deviation = target.deviation(record.measured_bitrate_bps) * 100
            logger.warning(
                f"{MAX_PASSES} 遍编码后码率仍超出容差: {bps_to_mbps(record.measured_bitrate_bps)} Mbps, "
                f"偏差 {deviation:+.1f}%",
                extra={"file": name, "phase": "pass", "pass": record.pass_number},
            )
            break

        quality = next_pass_quality(passes, target)

    return TranscodeOutcome(
        asset=asset,
        target=target,
        search=search,
        passes=tuple(passes),
        output_path=output_path,
    )


def transcode_to_target(
    path: str,
    target: TargetProfile,
    encoder,
    probe,
    asset_probe,
    **kwargs,
) -> TranscodeOutcome:
    """
    核心入口：探测源视频后运行采样搜索和多遍编码

    Args:
        path: 源视频路径
        target: 目标码率
        encoder: 编码器
        probe: 码率测量
        asset_probe: 分辨率/时长探测（probe(path) -> VideoAsset）
        **kwargs: 透传给 run_passes

    Returns:
        TranscodeOutcome
    """
    asset = asset_probe.probe(path)
    return run_passes(asset, target, encoder, probe, **kwargs)
