#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
视频信息获取模块

通过 ffprobe 获取源视频的分辨率/时长，以及测量编码结果的码率
"""

import os
import subprocess
import logging
from typing import Optional

from boiler.core.errors import MeasurementUnavailable, ProbeFailure
from boiler.core.models import VideoAsset

logger = logging.getLogger(__name__)

# ffprobe 在字段缺失时输出的占位值
_MISSING_VALUES = ("", "N/A", "0")


def _run_ffprobe(args: list, filepath: str) -> str:
    """执行 ffprobe 并返回首行输出（已去除空白）"""
    cmd = ["ffprobe", "-v", "error"] + args + [filepath]
    output = subprocess.check_output(cmd, stderr=subprocess.DEVNULL).decode("utf-8")
    lines = output.strip().splitlines()
    return lines[0].strip() if lines else ""


def get_height(filepath: str) -> int:
    """
    获取视频高度

    Args:
        filepath: 视频文件路径

    Returns:
        高度（像素）
    """
    try:
        output = _run_ffprobe(
            [
                "-select_streams", "v:0",
                "-show_entries", "stream=height",
                "-of", "default=noprint_wrappers=1:nokey=1",
            ],
            filepath,
        )
        return int(output)
    except (subprocess.CalledProcessError, OSError, ValueError) as e:
        raise ProbeFailure(f"无法获取视频分辨率 {filepath}: {e}") from e


def get_duration(filepath: str) -> float:
    """
    获取视频时长（秒）

    Args:
        filepath: 视频文件路径

    Returns:
        时长（秒）
    """
    try:
        output = _run_ffprobe(
            [
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
            ],
            filepath,
        )
        duration = float(output)
    except (subprocess.CalledProcessError, OSError, ValueError) as e:
        raise ProbeFailure(f"无法获取视频时长 {filepath}: {e}") from e

    if duration <= 0:
        raise ProbeFailure(f"视频时长无效 {filepath}: {duration}")
    return duration


def get_stream_bitrate(filepath: str) -> Optional[int]:
    """读取视频流元数据中的码率，缺失时返回 None"""
    try:
        output = _run_ffprobe(
            [
                "-select_streams", "v:0",
                "-show_entries", "stream=bit_rate",
                "-of", "default=noprint_wrappers=1:nokey=1",
            ],
            filepath,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug(f"ffprobe 读取流码率失败 {filepath}: {e}")
        return None

    if output in _MISSING_VALUES:
        return None
    try:
        return int(output)
    except ValueError:
        return None


def measure_bitrate(filepath: str, duration_seconds: Optional[float] = None) -> int:
    """
    测量视频码率

    优先使用视频流元数据中的码率，缺失时按 文件大小 × 8 / 时长 估算。

    Args:
        filepath: 视频文件路径
        duration_seconds: 视频时长，用于估算

    Returns:
        码率（bps）

    Raises:
        MeasurementUnavailable: 两种方式都无法得到码率
    """
    bitrate = get_stream_bitrate(filepath)
    if bitrate:
        return bitrate

    if duration_seconds and duration_seconds > 0 and os.path.exists(filepath):
        file_size = os.path.getsize(filepath)
        if file_size > 0:
            estimated = int(file_size * 8 / duration_seconds)
            logger.debug(
                f"流码率缺失，按文件大小估算: {os.path.basename(filepath)} -> {estimated} bps"
            )
            return estimated

    raise MeasurementUnavailable(f"无法测量码率: {filepath}")


class FFprobeBitrateProbe:
    """基于 ffprobe 的码率测量"""

    def measure(self, media_path: str, duration_seconds: Optional[float] = None) -> int:
        return measure_bitrate(media_path, duration_seconds)


class FFprobeAssetProbe:
    """基于 ffprobe 的分辨率/时长探测"""

    def probe(self, path: str) -> VideoAsset:
        height = get_height(path)
        duration = get_duration(path)
        logger.debug(f"探测完成: {os.path.basename(path)} {height}p {duration:.1f}s")
        return VideoAsset(path=path, duration_seconds=duration, height_pixels=height)
