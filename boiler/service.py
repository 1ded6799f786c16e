#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
服务层

提供可被 CLI 复用的批量转码执行入口。

单个硬件编码会话同时运行多个转码会互相争抢，导致码率测量失真，
因此所有文件严格按顺序逐个处理。
"""

import os
import shutil
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from boiler.config.defaults import (
    RESULT_SUCCESS,
    RESULT_SKIP_MARKER,
    RESULT_SKIP_EXISTS,
    RESULT_SKIP_BITRATE,
    RESULT_ERROR,
)
from boiler.core.encoder import FFmpegEncoder, remove_quietly
from boiler.core.errors import BoilerError, MeasurementUnavailable
from boiler.core.models import TranscodeOutcome
from boiler.core.passes import run_passes
from boiler.core.planner import plan_samples
from boiler.core.target import resolve_target, bps_to_mbps
from boiler.core.video import FFprobeAssetProbe, FFprobeBitrateProbe
from boiler.utils.files import get_video_files, has_skip_marker, resolve_output_paths
from boiler.utils.process import is_shutdown_requested

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """单个文件的处理结果"""

    filepath: str
    status: str
    error: Optional[str] = None
    outcome: Optional[TranscodeOutcome] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status != RESULT_ERROR


def transcode_file(
    filepath: str,
    config: Dict[str, Any],
    encoder,
    bitrate_probe,
    asset_probe,
) -> TaskResult:
    """
    转码单个文件

    Args:
        filepath: 源视频路径
        config: 已加载的配置
        encoder: 编码器
        bitrate_probe: 码率测量
        asset_probe: 分辨率/时长探测

    Returns:
        TaskResult；BoilerError 和 OSError 记为失败，KeyboardInterrupt 向上传播以停止批处理
    """
    input_folder = config["paths"]["input"]
    output_folder = config["paths"]["output"]
    files_cfg = config["files"]
    target_cfg = config["encoding"]["target"]
    search_cfg = config["search"]
    extra_ctx = {"file": os.path.basename(filepath)}

    new_filename, temp_filename = resolve_output_paths(
        filepath, input_folder, output_folder, files_cfg.get("keep_structure", True)
    )
    if files_cfg.get("skip_existing", True) and os.path.exists(new_filename):
        logger.info(f"[跳过] 输出已存在: {os.path.basename(new_filename)}", extra=extra_ctx)
        return TaskResult(filepath, RESULT_SKIP_EXISTS)

    try:
        asset = asset_probe.probe(filepath)
        target = resolve_target(
            asset.height_pixels,
            override_bps=target_cfg.get("override_bps", 0),
            tolerance=target_cfg["tolerance"],
            target_by_resolution=target_cfg.get("by_resolution"),
        )
        stats = {
            "height": asset.height_pixels,
            "duration": asset.duration_seconds,
            "target_bitrate": target.target_bitrate_bps,
        }

        if files_cfg.get("skip_below_target", True):
            try:
                source_bitrate = bitrate_probe.measure(filepath, asset.duration_seconds)
            except MeasurementUnavailable as e:
                logger.warning(f"无法测量源码率，继续转码: {e}", extra=extra_ctx)
            else:
                stats["source_bitrate"] = source_bitrate
                if source_bitrate <= target.upper_bound:
                    logger.info(
                        f"[跳过] 源码率 {bps_to_mbps(source_bitrate)} Mbps 已不高于目标上限 "
                        f"{bps_to_mbps(target.upper_bound)} Mbps",
                        extra=extra_ctx,
                    )
                    return TaskResult(filepath, RESULT_SKIP_BITRATE, stats=stats)

        windows, sample_duration = plan_samples(
            asset.duration_seconds, search_cfg["sample_duration"]
        )
        logger.info(
            f"[开始] {asset.height_pixels}p {asset.duration_seconds / 60:.1f}分钟, "
            f"目标 {bps_to_mbps(target.target_bitrate_bps)} Mbps, "
            f"采样 {len(windows)} × {sample_duration:g}s",
            extra=extra_ctx,
        )

        os.makedirs(os.path.dirname(new_filename) or ".", exist_ok=True)
        start_time = time.time()
        outcome = run_passes(
            asset,
            target,
            encoder,
            bitrate_probe,
            windows=windows,
            output_path=temp_filename,
            start_quality=search_cfg["start_quality"],
            max_iterations=search_cfg["max_iterations"],
            work_dir=os.path.dirname(temp_filename) or ".",
        )
        stats["encode_time"] = time.time() - start_time
        shutil.move(temp_filename, new_filename)
    except BoilerError as e:
        logger.error(f"[失败] {e}", extra=extra_ctx)
        remove_quietly(temp_filename)
        return TaskResult(filepath, RESULT_ERROR, error=str(e))
    except OSError as e:
        # 输出目录无法创建或移动失败，只放弃当前文件
        logger.error(f"[失败] 文件操作出错: {e}", extra=extra_ctx)
        remove_quietly(temp_filename)
        return TaskResult(filepath, RESULT_ERROR, error=str(e))
    except BaseException:
        remove_quietly(temp_filename)
        raise

    stats["passes"] = outcome.pass_count
    stats["final_quality"] = outcome.final_quality
    stats["final_bitrate"] = outcome.final_bitrate_bps
    logger.info(
        f"[完成] {os.path.basename(new_filename)} | 质量 {outcome.final_quality} | "
        f"{bps_to_mbps(outcome.final_bitrate_bps)} Mbps "
        f"(偏差 {outcome.deviation_fraction * 100:+.1f}%) | {outcome.pass_count} 遍 | "
        f"耗时 {stats['encode_time'] / 60:.1f}分钟",
        extra=extra_ctx,
    )
    return TaskResult(filepath, RESULT_SUCCESS, outcome=outcome, stats=stats)


def summarize_results(results: List[TaskResult]) -> Dict[str, int]:
    """统计结果并输出摘要"""
    summary = {
        "total": len(results),
        "success": sum(1 for r in results if r.status == RESULT_SUCCESS),
        "skip_marker": sum(1 for r in results if r.status == RESULT_SKIP_MARKER),
        "skip_exists": sum(1 for r in results if r.status == RESULT_SKIP_EXISTS),
        "skip_bitrate": sum(1 for r in results if r.status == RESULT_SKIP_BITRATE),
        "failed": sum(1 for r in results if r.status == RESULT_ERROR),
        "tolerance_miss": sum(
            1 for r in results if r.outcome is not None and not r.outcome.within_tolerance
        ),
    }

    logger.info("=" * 60)
    logger.info("任务完成统计")
    logger.info("-" * 60)
    logger.info(
        f"总文件数: {summary['total']}, 成功: {summary['success']}, "
        f"跳过(已处理标记): {summary['skip_marker']}, 跳过(已存在): {summary['skip_exists']}, "
        f"跳过(码率已达标): {summary['skip_bitrate']}, 失败: {summary['failed']}"
    )
    if summary["tolerance_miss"]:
        logger.warning(f"超出容差（已接受）: {summary['tolerance_miss']} 个文件")
        for r in results:
            if r.outcome is not None and not r.outcome.within_tolerance:
                logger.warning(
                    f"  - {os.path.basename(r.filepath)}: "
                    f"偏差 {r.outcome.deviation_fraction * 100:+.1f}%"
                )
    for r in results:
        if r.status == RESULT_ERROR:
            logger.error(f"  - {os.path.basename(r.filepath)}: {r.error}")
    logger.info("=" * 60)
    return summary


def run_batch(
    config: Dict[str, Any],
    encoder=None,
    bitrate_probe=None,
    asset_probe=None,
) -> int:
    """
    执行批量转码任务

    Args:
        config: 已准备好的配置（含 CLI 覆盖、运行模式）
        encoder: 编码器，默认 FFmpegEncoder
        bitrate_probe: 码率测量，默认 FFprobeBitrateProbe
        asset_probe: 分辨率/时长探测，默认 FFprobeAssetProbe

    Returns:
        进程退出码：0 成功，1 表示存在失败任务
    """
    input_folder = config["paths"]["input"]
    output_folder = config["paths"]["output"]
    files_cfg = config["files"]
    dry_run = config.get("dry_run", False)

    if encoder is None:
        encoder = FFmpegEncoder(
            config["encoding"].get("encoder", "hevc_videotoolbox"),
            print_cmd=config.get("logging", {}).get("print_cmd", False),
        )
    if bitrate_probe is None:
        bitrate_probe = FFprobeBitrateProbe()
    if asset_probe is None:
        asset_probe = FFprobeAssetProbe()

    logger.info("=" * 60)
    logger.info("boiler - 按目标码率自动调节质量值的批量转码")
    logger.info("=" * 60)
    logger.info(f"输入目录: {input_folder}")
    logger.info(f"输出目录: {output_folder}")
    logger.info(f"扫描深度: {files_cfg.get('max_depth')}")
    logger.info(f"码率容差: ±{config['encoding']['target']['tolerance'] * 100:.0f}%")
    logger.info("-" * 60)

    if not os.path.isdir(input_folder):
        logger.error(f"输入目录不存在: {input_folder}")
        return 1

    video_files = get_video_files(input_folder, files_cfg.get("max_depth", 1))
    if not video_files:
        logger.warning("未发现任何视频文件")
        return 0
    logger.info(f"发现 {len(video_files)} 个视频文件")

    results: List[TaskResult] = []
    pending = []
    markers = files_cfg.get("skip_markers") or []
    for filepath in video_files:
        if has_skip_marker(filepath, markers):
            logger.info("[跳过] 文件名带有已处理标记", extra={"file": os.path.basename(filepath)})
            results.append(TaskResult(filepath, RESULT_SKIP_MARKER))
            continue
        pending.append(filepath)

    if dry_run:
        logger.info("[DRY RUN] 预览模式，不实际执行")
        for i, filepath in enumerate(pending, 1):
            output_path, _ = resolve_output_paths(
                filepath, input_folder, output_folder, files_cfg.get("keep_structure", True)
            )
            logger.info(
                f"  {i}. {os.path.relpath(filepath, input_folder)} → "
                f"{os.path.relpath(output_path, output_folder)}"
            )
        return 0

    os.makedirs(output_folder, exist_ok=True)

    for index, filepath in enumerate(pending, 1):
        if is_shutdown_requested():
            logger.warning("收到退出请求，停止处理剩余文件")
            break
        logger.info(
            f"[进度] {index}/{len(pending)} {os.path.relpath(filepath, input_folder)}",
            extra={"file": os.path.basename(filepath)},
        )
        results.append(
            transcode_file(filepath, config, encoder, bitrate_probe, asset_probe)
        )

    summary = summarize_results(results)
    return 0 if summary["failed"] == 0 else 1
