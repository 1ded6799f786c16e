#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
boiler - CLI 入口

命令行参数解析和运行
"""

import sys
import logging
import argparse
import traceback

from boiler.config import load_config, apply_cli_overrides
from boiler.config.defaults import (
    DEFAULT_INPUT_FOLDER,
    DEFAULT_OUTPUT_FOLDER,
    DEFAULT_LOG_FOLDER,
)
from boiler.bootstrap import prepare_environment, find_missing_tools
from boiler.service import run_batch
from boiler.utils.process import terminate_all_ffmpeg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='boiler',
        description='boiler - 按目标码率自动调节 VideoToolbox 质量值的批量 HEVC 转码',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
使用示例:
  # 基本用法（1080p 目标 8Mbps，4K 目标 11Mbps）
  python main.py -i /path/to/input -o /path/to/output

  # 指定目标码率
  python main.py -i ./videos --target-mbps 6

  # 使用配置文件并预览任务
  python main.py --config ./config.yaml --dry-run
        '''
    )

    # 基本路径参数
    parser.add_argument('-i', '--input', default=DEFAULT_INPUT_FOLDER,
                        help=f'输入文件夹路径 (默认: {DEFAULT_INPUT_FOLDER})')
    parser.add_argument('-o', '--output', default=DEFAULT_OUTPUT_FOLDER,
                        help=f'输出文件夹路径 (默认: {DEFAULT_OUTPUT_FOLDER})')
    parser.add_argument('-l', '--log', default=DEFAULT_LOG_FOLDER,
                        help=f'日志文件夹路径 (默认: {DEFAULT_LOG_FOLDER})')

    # 码率选项
    parser.add_argument('-t', '--target-mbps', type=float, default=None,
                        help='目标码率 (Mbps)，默认按分辨率选择')
    parser.add_argument('--tolerance', type=float, default=None,
                        help='码率容差比例 (默认: 0.05)')

    # 文件选项
    parser.add_argument('-L', '--max-depth', type=int, default=None,
                        help='向下扫描的子目录层数 (默认: 1)')
    parser.add_argument('--no-keep-structure', action='store_true',
                        help='不保持原始目录结构')
    parser.add_argument('--no-skip-below-target', action='store_true',
                        help='源码率已不高于目标时仍然转码')

    # 配置文件选项
    parser.add_argument('--config', type=str, default=None,
                        help='配置文件路径 (YAML 格式)')
    parser.add_argument('--dry-run', action='store_true',
                        help='仅显示任务计划，不实际执行')

    # 日志选项
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='输出调试日志')
    parser.add_argument('-q', '--quiet', action='count', default=0,
                        help='减少输出 (-q 警告, -qq 错误)')
    parser.add_argument('--plain', action='store_true',
                        help='控制台不使用彩色')
    parser.add_argument('--json-logs', action='store_true',
                        help='控制台输出 JSON 行日志')
    parser.add_argument('--print-cmd', action='store_true',
                        help='打印完整 FFmpeg 命令')

    return parser


def parse_arguments(argv=None):
    """解析命令行参数"""
    return build_parser().parse_args(argv)


def main(argv=None) -> int:
    """主函数"""
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
        config = apply_cli_overrides(config, args)
    except (OSError, ValueError) as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return 2

    try:
        config = prepare_environment(config)

        missing = find_missing_tools()
        if missing and not config.get("dry_run"):
            logging.error(f"未找到依赖工具: {', '.join(missing)}，请安装 FFmpeg 并加入 PATH")
            return 1

        return run_batch(config)

    except KeyboardInterrupt:
        logging.warning("用户中断操作，已停止批处理")
        terminate_all_ffmpeg()
        return 130
    except Exception as e:
        logging.critical(f"程序执行过程中发生严重错误: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
