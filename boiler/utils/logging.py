#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
日志配置

每行日志可通过 extra= 携带文件/阶段/迭代/遍数/质量值，
控制台按彩色、纯文本或 JSON 行输出，日志文件始终记录 DEBUG。
"""

import os
import sys
import json
import logging
import datetime

from colorama import Back, Fore, Style, just_fix_windows_console

just_fix_windows_console()

# 搜索过程中随日志携带的字段，按此顺序输出
CONTEXT_FIELDS = ("file", "phase", "iteration", "pass", "quality")

_COLORS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Back.RED,
}


def _context(record):
    """取出记录上已设置的上下文字段"""
    return [
        (key, getattr(record, key))
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) not in (None, "")
    ]


def _context_suffix(record) -> str:
    items = _context(record)
    if not items:
        return ""
    return " (" + " ".join(f"{key}={value}" for key, value in items) + ")"


class ConsoleFormatter(logging.Formatter):
    """控制台单行输出，可选按级别着色"""

    def __init__(self, enable_color: bool = False):
        super().__init__()
        self.enable_color = enable_color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"[{ts}] {record.levelname:<5} {record.getMessage()}{_context_suffix(record)}"
        if self.enable_color:
            return f"{_COLORS.get(record.levelno, '')}{line}{Style.RESET_ALL}"
        return line


class FileFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{ts} | {record.levelname:<7} | {record.name} | {record.getMessage()}{_context_suffix(record)}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """每条记录一行 JSON，上下文字段展开为顶层键"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(log_folder: str, level="INFO", plain: bool = False, json_console: bool = False) -> str:
    """
    配置根 logger：日志文件记录全部 DEBUG，控制台按 level 过滤

    Args:
        log_folder: 日志文件夹路径
        level: 控制台级别名称（如 "INFO"）或数值，无法识别时按 INFO
        plain: 禁用彩色输出
        json_console: 控制台输出 JSON 行

    Returns:
        本次日志文件路径
    """
    os.makedirs(log_folder, exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
    log_file = os.path.join(log_folder, f"boiler_{timestamp}.log")

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(FileFormatter())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if json_console:
        console_handler.setFormatter(JsonFormatter())
    else:
        use_color = not plain and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        console_handler.setFormatter(ConsoleFormatter(enable_color=use_color))

    root.addHandler(file_handler)
    root.addHandler(console_handler)

    root.log(level, f"日志初始化完成: {log_file}")
    return log_file
