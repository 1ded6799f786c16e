#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FFmpeg 编码器模块

构建和执行 VideoToolbox HEVC 编码命令。VideoToolbox 不支持按码率定量编码，
只能通过 -q:v 质量值间接控制码率。
"""

import os
import subprocess
import logging
from typing import List, Optional, Tuple

from boiler.config.defaults import DEFAULT_ENCODER
from boiler.core.errors import EncodeFailure
from boiler.utils.process import (
    register_process,
    unregister_process,
    is_shutdown_requested,
)

logger = logging.getLogger(__name__)

# 出错时优先返回的已知错误信息
KNOWN_ERRORS = [
    "Unknown encoder",
    "No such file or directory",
    "Invalid data found when processing input",
    "Error initializing output stream",
    "cannot create compression session",
    "Device does not support",
]


def format_command(cmd: List[str]) -> str:
    """命令列表转为可复制执行的字符串"""
    return " ".join(f'"{arg}"' if " " in str(arg) else str(arg) for arg in cmd)


def execute_ffmpeg(cmd: List[str], print_cmd: bool = False) -> Tuple[bool, Optional[str]]:
    """
    执行 FFmpeg 命令并检查错误

    Args:
        cmd: FFmpeg 命令列表
        print_cmd: 以 INFO 级别打印命令（默认 DEBUG）

    Returns:
        (成功标志, 错误信息)
    """
    if is_shutdown_requested():
        return False, "程序正在退出"

    logger.log(logging.INFO if print_cmd else logging.DEBUG, f"FFmpeg 命令: {format_command(cmd)}")

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        return False, str(e)

    register_process(process)
    try:
        _, stderr = process.communicate()
    finally:
        unregister_process(process)

    if process.returncode != 0:
        for error_pattern in KNOWN_ERRORS:
            if error_pattern in stderr:
                return False, error_pattern
        return False, stderr[-500:] if len(stderr) > 500 else stderr

    return True, None


def _video_args(encoder: str, quality: int) -> List[str]:
    args = ["-c:v", encoder, "-q:v", str(quality)]
    if "hevc" in encoder:
        # QuickLook/Apple 播放器需要 hvc1 标签
        args.extend(["-tag:v", "hvc1"])
    return args


def build_sample_command(
    filepath: str,
    output_path: str,
    start_offset: float,
    duration: float,
    quality: int,
    encoder: str = DEFAULT_ENCODER,
) -> List[str]:
    """
    构建采样片段编码命令（音频直接复制）

    Args:
        filepath: 输入文件路径
        output_path: 片段输出路径
        start_offset: 片段起点（秒）
        duration: 片段时长（秒）
        quality: 质量值
        encoder: ffmpeg 编码器名称

    Returns:
        命令列表
    """
    cmd = ["ffmpeg", "-y", "-hide_banner", "-loglevel", "error"]
    cmd.extend(["-ss", f"{start_offset:g}", "-i", filepath, "-t", f"{duration:g}"])
    cmd.extend(_video_args(encoder, quality))
    cmd.extend(["-c:a", "copy", "-f", "mp4", output_path])
    return cmd


def build_full_command(
    filepath: str,
    output_path: str,
    quality: int,
    encoder: str = DEFAULT_ENCODER,
) -> List[str]:
    """构建完整编码命令（音频直接复制）"""
    cmd = ["ffmpeg", "-y", "-hide_banner", "-loglevel", "error", "-i", filepath]
    cmd.extend(_video_args(encoder, quality))
    cmd.extend(["-c:a", "copy", "-movflags", "+faststart", "-f", "mp4", output_path])
    return cmd


def remove_quietly(path: str) -> None:
    """删除临时文件，失败只记录日志"""
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"删除临时文件失败 {path}: {e}")


class FFmpegEncoder:
    """调用 ffmpeg 的硬件编码器"""

    def __init__(self, encoder: str = DEFAULT_ENCODER, print_cmd: bool = False):
        self.encoder = encoder
        self.print_cmd = print_cmd

    def _run(self, cmd: List[str], output_path: str) -> str:
        success, error = execute_ffmpeg(cmd, print_cmd=self.print_cmd)
        if not success:
            remove_quietly(output_path)
            raise EncodeFailure(f"编码失败: {error}", stderr=error or "")
        return output_path

    def encode_sample(
        self,
        path: str,
        start_offset: float,
        duration: float,
        quality: int,
        output_path: str,
    ) -> str:
        cmd = build_sample_command(path, output_path, start_offset, duration, quality, self.encoder)
        return self._run(cmd, output_path)

    def encode_full(self, path: str, quality: int, output_path: str) -> str:
        cmd = build_full_command(path, output_path, quality, self.encoder)
        return self._run(cmd, output_path)
