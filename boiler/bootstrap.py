#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
启动准备模块

统一处理编码、日志初始化、信号/进程管理、遗留临时文件清理、依赖工具检测。
"""

import sys
import io
import shutil
import logging
from typing import Dict, Any, List

from boiler.utils.process import (
    cleanup_temp_files,
    setup_signal_handlers,
)
from boiler.utils.logging import setup_logging

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")


def enforce_utf8_windows() -> None:
    """在 Windows 强制 stdout/stderr 使用 UTF-8，避免中文乱码"""
    if sys.platform != 'win32':
        return
    if sys.stdout.encoding != 'utf-8':
        sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    if sys.stderr.encoding != 'utf-8':
        sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')


def find_missing_tools() -> List[str]:
    """返回 PATH 中找不到的外部工具"""
    return [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]


def prepare_environment(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    启动前统一准备工作：编码、信号处理、日志初始化、临时文件清理。

    Args:
        config: 已加载并应用 CLI 覆盖的配置

    Returns:
        更新后的配置（logging.log_file 为本次日志文件路径）
    """
    enforce_utf8_windows()

    # 信号处理需尽早注册
    setup_signal_handlers()

    log_cfg = config.setdefault("logging", {})
    log_file = setup_logging(
        config["paths"]["log"],
        level=log_cfg.get("level", "INFO"),
        plain=log_cfg.get("plain", False),
        json_console=log_cfg.get("json_console", False),
    )
    log_cfg["log_file"] = log_file

    # 清理上次中断遗留的临时文件
    cleaned = cleanup_temp_files(config["paths"]["output"])
    if cleaned > 0:
        logging.info(f"启动清理: 删除 {cleaned} 个临时文件")

    return config
