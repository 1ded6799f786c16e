#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
命令行入口测试
"""

import logging
import signal

import pytest

from boiler import cli
from boiler.cli import main, parse_arguments


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """隔离工作目录、日志 handler 和信号处理器"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    sigint = signal.getsignal(signal.SIGINT)
    sigterm = signal.getsignal(signal.SIGTERM)
    yield tmp_path
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    signal.signal(signal.SIGINT, sigint)
    signal.signal(signal.SIGTERM, sigterm)


def test_parse_arguments_defaults():
    args = parse_arguments([])
    assert args.input == "./input"
    assert args.target_mbps is None
    assert args.tolerance is None
    assert args.verbose == 0
    assert not args.dry_run


def test_parse_arguments_flags():
    args = parse_arguments(["-i", "/videos", "-t", "6", "--tolerance", "0.1", "-L", "2", "-qq", "--json-logs"])
    assert args.input == "/videos"
    assert args.target_mbps == 6.0
    assert args.tolerance == 0.1
    assert args.max_depth == 2
    assert args.quiet == 2
    assert args.json_logs


def test_missing_config_file(isolated_env):
    assert main(["--config", str(isolated_env / "nope.yaml")]) == 2


def test_invalid_target(isolated_env):
    assert main(["-t", "-1"]) == 2


def test_dry_run(isolated_env):
    input_dir = isolated_env / "videos"
    input_dir.mkdir()
    (input_dir / "a.mkv").write_bytes(b"x")
    code = main([
        "-i", str(input_dir),
        "-o", str(isolated_env / "out"),
        "-l", str(isolated_env / "logs"),
        "--dry-run", "--plain",
    ])
    assert code == 0
    assert list((isolated_env / "logs").glob("boiler_*.log"))


def test_missing_tools(isolated_env, monkeypatch):
    monkeypatch.setattr(cli, "find_missing_tools", lambda: ["ffmpeg", "ffprobe"])
    code = main(["-i", str(isolated_env), "-l", str(isolated_env / "logs"), "--plain"])
    assert code == 1


def test_interrupt_returns_130(isolated_env, monkeypatch):
    def interrupted(config):
        raise KeyboardInterrupt()

    monkeypatch.setattr(cli, "find_missing_tools", lambda: [])
    monkeypatch.setattr(cli, "run_batch", interrupted)
    code = main(["-i", str(isolated_env), "-l", str(isolated_env / "logs"), "--plain"])
    assert code == 130
