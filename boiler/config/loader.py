#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
配置加载器

支持从 YAML 文件加载配置，并实现配置优先级合并
优先级: 命令行参数 > 配置文件 > 程序默认值
"""

import os
import logging
import copy
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from boiler.config.defaults import (
    DEFAULT_CONFIG,
    DEFAULT_INPUT_FOLDER,
    DEFAULT_OUTPUT_FOLDER,
    DEFAULT_LOG_FOLDER,
)

logger = logging.getLogger(__name__)


def find_default_config() -> Optional[str]:
    """
    查找默认配置文件

    按以下顺序查找:
    1. 当前工作目录下的 config.yaml
    2. 用户目录下的 .boiler/config.yaml

    Returns:
        找到的配置文件路径，如果没找到返回 None
    """
    local_config = Path.cwd() / "config.yaml"
    if local_config.exists():
        return str(local_config)

    home_config = Path.home() / ".boiler" / "config.yaml"
    if home_config.exists():
        return str(home_config)

    return None


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    深度合并两个字典，override 中的值会覆盖 base 中的值

    Args:
        base: 基础字典
        override: 覆盖字典

    Returns:
        合并后的字典
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    校验关键配置项，非法值直接抛出 ValueError

    YAML 中的分辨率档位键可能被解析为字符串，这里统一转换为 int。
    """
    target_cfg = config["encoding"]["target"]

    tolerance = float(target_cfg["tolerance"])
    if not 0 < tolerance < 1:
        raise ValueError(f"码率容差必须在 (0, 1) 之间: {tolerance}")
    target_cfg["tolerance"] = tolerance

    override = int(target_cfg.get("override_bps") or 0)
    if override < 0:
        raise ValueError(f"目标码率不能为负数: {override}")
    target_cfg["override_bps"] = override

    tiers = {int(k): int(v) for k, v in (target_cfg.get("by_resolution") or {}).items()}
    if not tiers:
        raise ValueError("encoding.target.by_resolution 不能为空")
    if any(v <= 0 for v in tiers.values()):
        raise ValueError(f"分辨率档位码率必须为正数: {tiers}")
    target_cfg["by_resolution"] = tiers

    max_depth = int(config["files"]["max_depth"])
    if max_depth < 0:
        raise ValueError(f"扫描深度不能为负数: {max_depth}")
    config["files"]["max_depth"] = max_depth

    search_cfg = config["search"]
    start_quality = int(search_cfg["start_quality"])
    if not 0 <= start_quality <= 100:
        raise ValueError(f"起始质量值必须在 0-100 之间: {start_quality}")
    search_cfg["start_quality"] = start_quality
    max_iterations = int(search_cfg["max_iterations"])
    if max_iterations < 1:
        raise ValueError("search.max_iterations 至少为 1")
    search_cfg["max_iterations"] = max_iterations
    sample_duration = float(search_cfg["sample_duration"])
    if sample_duration <= 0:
        raise ValueError("search.sample_duration 必须为正数")
    search_cfg["sample_duration"] = sample_duration

    return config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，如果为 None 则使用默认路径

    Returns:
        配置字典
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is None:
        config_path = find_default_config()
    elif not os.path.exists(config_path):
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"配置文件格式错误（顶层应为映射）: {config_path}")
        logger.info(f"已加载配置文件: {config_path}")
        config = deep_merge(config, file_config)

    return validate_config(config)


def apply_cli_overrides(config: Dict[str, Any], args) -> Dict[str, Any]:
    """
    将命令行参数覆盖到配置中

    优先级: 命令行参数 > 配置文件 > 程序默认值

    Args:
        config: 配置字典
        args: 命令行参数

    Returns:
        更新后的配置字典
    """
    config = copy.deepcopy(config)
    config.setdefault("logging", {})
    config.setdefault("files", {})
    config.setdefault("encoding", {}).setdefault("target", {})

    # 路径覆盖
    if getattr(args, "input", None) and args.input != DEFAULT_INPUT_FOLDER:
        config["paths"]["input"] = args.input
    if getattr(args, "output", None) and args.output != DEFAULT_OUTPUT_FOLDER:
        config["paths"]["output"] = args.output
    if getattr(args, "log", None) and args.log != DEFAULT_LOG_FOLDER:
        config["paths"]["log"] = args.log

    # 码率覆盖
    target_mbps = getattr(args, "target_mbps", None)
    if target_mbps is not None:
        if target_mbps <= 0:
            raise ValueError(f"目标码率必须为正数: {target_mbps}")
        config["encoding"]["target"]["override_bps"] = int(round(target_mbps * 1000000))
    tolerance = getattr(args, "tolerance", None)
    if tolerance is not None:
        if not 0 < tolerance < 1:
            raise ValueError(f"码率容差必须在 (0, 1) 之间: {tolerance}")
        config["encoding"]["target"]["tolerance"] = tolerance

    # 文件处理覆盖
    max_depth = getattr(args, "max_depth", None)
    if max_depth is not None:
        if max_depth < 0:
            raise ValueError(f"扫描深度不能为负数: {max_depth}")
        config["files"]["max_depth"] = max_depth
    if getattr(args, "no_keep_structure", False):
        config["files"]["keep_structure"] = False
    if getattr(args, "no_skip_below_target", False):
        config["files"]["skip_below_target"] = False

    # 日志覆盖：-v 提升到 DEBUG，-q/-qq 降到 WARNING/ERROR
    log_cfg = config["logging"]
    if getattr(args, "verbose", 0):
        log_cfg["level"] = "DEBUG"
    elif getattr(args, "quiet", 0):
        log_cfg["level"] = "WARNING" if args.quiet == 1 else "ERROR"
    if getattr(args, "plain", False):
        log_cfg["plain"] = True
    if getattr(args, "json_logs", False):
        log_cfg["json_console"] = True
    if getattr(args, "print_cmd", False):
        log_cfg["print_cmd"] = True

    if getattr(args, "dry_run", False):
        config["dry_run"] = True

    return config
