#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
进程管理模块

管理 FFmpeg 子进程，收到中断信号时终止正在运行的编码并停止整个批处理
"""

import os
import re
import signal
import subprocess
import logging
import threading
from typing import Set

from boiler.config.defaults import OUTPUT_SUFFIX

logger = logging.getLogger(__name__)

# 全局进程集合和锁（信号处理器在主线程中运行，需可重入）
_ffmpeg_processes: Set = set()
_process_lock = threading.RLock()
_shutdown_requested = False

# 临时文件前缀，批处理启动时清理
TEMP_PREFIX = "tmp_"

# 本程序写出的临时文件: tmp_<名称>.fmpg.mp4（完整编码）和 tmp_<名称>_sample_<n>.mp4（采样片段）
_TEMP_ARTIFACT_PATTERN = re.compile(
    r"^" + re.escape(TEMP_PREFIX) + r".+(" + re.escape(OUTPUT_SUFFIX) + r"|_sample_\d+\.mp4)$"
)


def is_temp_artifact(filename: str) -> bool:
    """文件名是否为本程序写出的临时文件（同为 tmp_ 开头的源视频不算）"""
    return _TEMP_ARTIFACT_PATTERN.match(os.path.basename(filename)) is not None


def register_process(process) -> None:
    """
    注册一个 FFmpeg 进程到全局集合

    Args:
        process: subprocess.Popen 对象
    """
    with _process_lock:
        _ffmpeg_processes.add(process)


def unregister_process(process) -> None:
    """
    从全局集合中移除一个 FFmpeg 进程

    Args:
        process: subprocess.Popen 对象
    """
    with _process_lock:
        _ffmpeg_processes.discard(process)


def is_shutdown_requested() -> bool:
    return _shutdown_requested


def reset_shutdown_state() -> None:
    """清除关闭标记（同一进程内重复运行批处理时使用）"""
    global _shutdown_requested
    _shutdown_requested = False


def terminate_all_ffmpeg() -> None:
    """
    终止所有注册的 FFmpeg 进程
    """
    global _shutdown_requested
    _shutdown_requested = True

    with _process_lock:
        processes = list(_ffmpeg_processes)

    if not processes:
        return

    logger.info(f"正在终止 {len(processes)} 个 FFmpeg 进程...")

    for process in processes:
        try:
            if process.poll() is None:
                process.terminate()
                logger.debug(f"已发送 SIGTERM 到进程 {process.pid}")
        except OSError as e:
            logger.warning(f"终止进程时出错: {e}")

    # 等待进程退出，超时则强制杀死
    for process in processes:
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            try:
                process.kill()
                logger.debug(f"已发送 SIGKILL 到进程 {process.pid}")
            except OSError as e:
                logger.warning(f"强制结束进程失败: {e}")

    logger.info("所有 FFmpeg 进程已终止")


def cleanup_temp_files(output_folder: str) -> int:
    """
    清理输出目录中上次中断遗留的临时文件

    只删除本程序写出的完整编码/采样片段临时文件，其它 tmp_ 开头的文件原样保留。

    Args:
        output_folder: 输出文件夹路径

    Returns:
        清理的文件数量
    """
    if not os.path.exists(output_folder):
        return 0

    cleaned_count = 0

    for root, _, files in os.walk(output_folder):
        for file in files:
            if is_temp_artifact(file):
                filepath = os.path.join(root, file)
                try:
                    os.remove(filepath)
                    logger.info(f"[清理] 删除临时文件: {filepath}")
                    cleaned_count += 1
                except OSError as e:
                    logger.warning(f"[清理] 删除临时文件失败 {filepath}: {e}")

    return cleaned_count


def setup_signal_handlers() -> None:
    """
    设置信号处理器，捕获 SIGINT (Ctrl+C) 和 SIGTERM

    终止正在运行的编码后抛出 KeyboardInterrupt，由上层清理临时文件并停止批处理。
    """

    def signal_handler(signum, frame):
        sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.warning(f"收到 {sig_name} 信号，正在清理...")
        terminate_all_ffmpeg()
        raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
