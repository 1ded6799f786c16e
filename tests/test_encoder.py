#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
编码器模块测试
"""

import os

import pytest

from boiler.core import encoder as encoder_module
from boiler.core.encoder import (
    FFmpegEncoder,
    build_full_command,
    build_sample_command,
    format_command,
)
from boiler.core.errors import EncodeFailure


class TestBuildEncodingCommands:
    """编码命令构建测试"""

    def test_sample_command(self):
        """测试采样片段编码命令"""
        cmd = build_sample_command(
            filepath="/test/input.mkv",
            output_path="/tmp/tmp_input_sample_1.mp4",
            start_offset=150,
            duration=60,
            quality=58,
        )

        assert cmd[0] == "ffmpeg"
        assert "-y" in cmd
        # -ss 在 -i 之前做快速定位
        assert cmd.index("-ss") < cmd.index("-i")
        assert cmd[cmd.index("-ss") + 1] == "150"
        assert cmd[cmd.index("-t") + 1] == "60"
        assert cmd[cmd.index("-c:v") + 1] == "hevc_videotoolbox"
        assert cmd[cmd.index("-q:v") + 1] == "58"
        assert cmd[cmd.index("-tag:v") + 1] == "hvc1"
        assert cmd[cmd.index("-c:a") + 1] == "copy"
        assert cmd[-1] == "/tmp/tmp_input_sample_1.mp4"

    def test_sample_command_fractional_offset(self):
        cmd = build_sample_command("/in.mp4", "/out.mp4", 30.5, 45.25, 60)
        assert cmd[cmd.index("-ss") + 1] == "30.5"
        assert cmd[cmd.index("-t") + 1] == "45.25"

    def test_full_command(self):
        """测试完整编码命令"""
        cmd = build_full_command("/test/input.mkv", "/output/tmp_input.fmpg.mp4", 61)

        assert "-ss" not in cmd
        assert "-t" not in cmd
        assert cmd[cmd.index("-i") + 1] == "/test/input.mkv"
        assert cmd[cmd.index("-q:v") + 1] == "61"
        assert cmd[cmd.index("-c:a") + 1] == "copy"
        assert "+faststart" in cmd
        assert cmd[-1] == "/output/tmp_input.fmpg.mp4"

    def test_non_hevc_encoder_has_no_tag(self):
        cmd = build_full_command("/in.mkv", "/out.mp4", 50, encoder="h264_videotoolbox")
        assert cmd[cmd.index("-c:v") + 1] == "h264_videotoolbox"
        assert "-tag:v" not in cmd

    def test_format_command_quotes_spaces(self):
        text = format_command(["ffmpeg", "-i", "/in/Season 01/a.mkv"])
        assert text == 'ffmpeg -i "/in/Season 01/a.mkv"'


class TestFFmpegEncoder:
    """测试 FFmpegEncoder 的成功/失败处理"""

    def test_encode_sample_success(self, monkeypatch, tmp_path):
        calls = []

        def fake_execute(cmd, print_cmd=False):
            calls.append(cmd)
            return True, None

        monkeypatch.setattr(encoder_module, "execute_ffmpeg", fake_execute)
        output = str(tmp_path / "sample.mp4")
        result = FFmpegEncoder().encode_sample("/in.mkv", 0, 60, 60, output)

        assert result == output
        assert calls[0][-1] == output
        assert calls[0][calls[0].index("-q:v") + 1] == "60"

    def test_failure_raises_and_removes_output(self, monkeypatch, tmp_path):
        output = tmp_path / "partial.mp4"
        output.write_bytes(b"partial")

        monkeypatch.setattr(
            encoder_module,
            "execute_ffmpeg",
            lambda cmd, print_cmd=False: (False, "Unknown encoder"),
        )

        with pytest.raises(EncodeFailure) as exc_info:
            FFmpegEncoder().encode_full("/in.mkv", 60, str(output))

        assert "Unknown encoder" in str(exc_info.value)
        assert exc_info.value.stderr == "Unknown encoder"
        assert not os.path.exists(output)

    def test_print_cmd_forwarded(self, monkeypatch, tmp_path):
        seen = {}

        def fake_execute(cmd, print_cmd=False):
            seen["print_cmd"] = print_cmd
            return True, None

        monkeypatch.setattr(encoder_module, "execute_ffmpeg", fake_execute)
        FFmpegEncoder(print_cmd=True).encode_full("/in.mkv", 60, str(tmp_path / "o.mp4"))
        assert seen["print_cmd"] is True


class TestExecuteFFmpeg:
    def test_missing_binary(self, monkeypatch):
        def raise_oserror(*args, **kwargs):
            raise FileNotFoundError("ffmpeg")

        monkeypatch.setattr(encoder_module.subprocess, "Popen", raise_oserror)
        success, error = encoder_module.execute_ffmpeg(["ffmpeg", "-version"])
        assert success is False
        assert "ffmpeg" in error

    def test_refuses_during_shutdown(self, monkeypatch):
        monkeypatch.setattr(encoder_module, "is_shutdown_requested", lambda: True)
        success, error = encoder_module.execute_ffmpeg(["ffmpeg", "-version"])
        assert success is False
        assert error == "程序正在退出"
