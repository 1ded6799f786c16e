#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pytest 配置文件
"""

import os
import sys
import copy
import pytest

# 添加项目根目录到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from boiler.config.defaults import DEFAULT_CONFIG
from boiler.core.errors import EncodeFailure, MeasurementUnavailable
from boiler.core.models import TargetProfile, VideoAsset


class FakeTranscoder:
    """
    同时充当编码器和码率测量的替身

    sample_bitrate: 质量值 -> 采样码率 的函数（或常数）
    full_bitrates: 每遍完整编码依次返回的码率
    source_bitrate: 源文件码率
    """

    source_bitrate = 20000000

    def __init__(self, sample_bitrate=8000000, full_bitrates=None,
                 fail_sample_at=None, fail_full_at=None, unmeasurable_full_at=None):
        if callable(sample_bitrate):
            self.sample_bitrate = sample_bitrate
        else:
            self.sample_bitrate = lambda quality: sample_bitrate
        self.full_bitrates = list(full_bitrates or [])
        self.fail_sample_at = fail_sample_at
        self.fail_full_at = fail_full_at
        self.unmeasurable_full_at = unmeasurable_full_at
        self.sample_calls = []
        self.full_calls = []
        self.measure_calls = []
        self._quality_of = {}
        self._full_outputs = set()

    def encode_sample(self, path, start_offset, duration, quality, output_path):
        self.sample_calls.append((path, start_offset, duration, quality, output_path))
        if self.fail_sample_at == len(self.sample_calls):
            raise EncodeFailure("模拟采样编码失败")
        self._write(output_path, quality)
        return output_path

    def encode_full(self, path, quality, output_path):
        self.full_calls.append((path, quality, output_path))
        self._write(output_path, quality)
        if self.fail_full_at == len(self.full_calls):
            raise EncodeFailure("模拟完整编码失败")
        self._full_outputs.add(output_path)
        return output_path

    def measure(self, media_path, duration_seconds=None):
        self.measure_calls.append((media_path, duration_seconds))
        if media_path in self._full_outputs:
            pass_index = len(self.full_calls)
            if self.unmeasurable_full_at == pass_index:
                raise MeasurementUnavailable("模拟码率不可用")
            if pass_index <= len(self.full_bitrates):
                return self.full_bitrates[pass_index - 1]
            return self.sample_bitrate(self._quality_of[media_path])
        if media_path in self._quality_of:
            return self.sample_bitrate(self._quality_of[media_path])
        # 源文件
        return self.source_bitrate

    @property
    def sample_qualities(self):
        return [call[3] for call in self.sample_calls]

    @property
    def full_qualities(self):
        return [call[1] for call in self.full_calls]

    def _write(self, output_path, quality):
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(b"\0" * 16)
        self._quality_of[output_path] = quality


class FakeAssetProbe:
    """返回固定分辨率/时长的探测替身"""

    def __init__(self, duration=300.0, height=1080):
        self.duration = duration
        self.height = height
        self.calls = []

    def probe(self, path):
        self.calls.append(path)
        return VideoAsset(path=path, duration_seconds=self.duration, height_pixels=self.height)


@pytest.fixture
def make_transcoder():
    return FakeTranscoder


@pytest.fixture
def make_asset_probe():
    return FakeAssetProbe


@pytest.fixture
def asset_1080p(tmp_path):
    """300 秒 1080p 源视频"""
    source = tmp_path / "movie.mkv"
    source.write_bytes(b"source")
    return VideoAsset(path=str(source), duration_seconds=300.0, height_pixels=1080)


@pytest.fixture
def target_8m():
    """8 Mbps，容差区间 [7.6M, 8.4M]"""
    return TargetProfile(target_bitrate_bps=8000000)


@pytest.fixture
def sample_config(tmp_path):
    """返回测试用配置"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["paths"] = {
        "input": str(tmp_path / "input"),
        "output": str(tmp_path / "output"),
        "log": str(tmp_path / "logs"),
    }
    return config


@pytest.fixture(autouse=True)
def reset_shutdown():
    """关闭标记是进程级状态，每个测试前后清除"""
    from boiler.utils.process import reset_shutdown_state

    reset_shutdown_state()
    yield
    reset_shutdown_state()
