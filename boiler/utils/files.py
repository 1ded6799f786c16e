#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
文件操作工具模块
"""

import os
import logging
from pathlib import Path
from typing import Iterable, List, Tuple

from boiler.config.defaults import (
    SUPPORTED_VIDEO_EXTENSIONS,
    SKIP_MARKERS,
    DEFAULT_MAX_DEPTH,
    OUTPUT_SUFFIX,
)
from boiler.utils.process import TEMP_PREFIX, is_temp_artifact

logger = logging.getLogger(__name__)


def has_skip_marker(filepath: str, markers: Iterable[str] = SKIP_MARKERS) -> bool:
    """文件名是否带有已处理标记（.hbrk. / .fmpg. / .orig.）"""
    name = os.path.basename(filepath)
    return any(marker in name for marker in markers)


def get_video_files(input_folder: str, max_depth: int = DEFAULT_MAX_DEPTH) -> List[str]:
    """
    获取输入文件夹中的所有视频文件

    Args:
        input_folder: 输入文件夹路径
        max_depth: 向下扫描的子目录层数，0 表示只扫描输入目录本身

    Returns:
        排序后的视频文件路径列表（不含临时文件）
    """
    video_files = []
    base_depth = os.path.abspath(input_folder).rstrip(os.sep).count(os.sep)
    for root, dirs, files in os.walk(input_folder):
        depth = os.path.abspath(root).rstrip(os.sep).count(os.sep) - base_depth
        if depth >= max_depth:
            dirs[:] = []
        dirs.sort()
        for file in sorted(files):
            if file.startswith("."):
                continue
            if file.startswith(TEMP_PREFIX):
                if not is_temp_artifact(file) and file.lower().endswith(SUPPORTED_VIDEO_EXTENSIONS):
                    # 输出名会与临时文件规则冲突
                    logger.warning(
                        f"[跳过] 文件名以 {TEMP_PREFIX} 开头，请重命名后再处理: {os.path.join(root, file)}"
                    )
                continue
            if file.lower().endswith(SUPPORTED_VIDEO_EXTENSIONS):
                video_files.append(os.path.join(root, file))
    return video_files


def resolve_output_paths(
    filepath: str, input_folder: str, output_folder: str, keep_structure: bool = True
) -> Tuple[str, str]:
    """
    根据输入文件和配置生成输出路径和临时路径

    Returns:
        (最终输出文件路径, 临时文件路径)
    """
    source_path = Path(filepath)
    output_name = f"{source_path.stem}{OUTPUT_SUFFIX}"

    if keep_structure:
        relative_dir = Path(os.path.relpath(filepath, input_folder)).parent
        output_path = Path(output_folder) / relative_dir / output_name
    else:
        output_path = Path(output_folder) / output_name

    # 统一使用 POSIX 风格路径，避免 Windows 下反斜杠导致路径对比或日志不一致
    new_filename = output_path.as_posix()
    temp_filename = (output_path.parent / f"{TEMP_PREFIX}{output_path.name}").as_posix()
    return new_filename, temp_filename
