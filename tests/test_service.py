#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
批量转码服务测试（使用替身编码器，不调用 ffmpeg）
"""

import os
from pathlib import Path

import pytest

from boiler.config.defaults import (
    RESULT_ERROR,
    RESULT_SKIP_BITRATE,
    RESULT_SKIP_EXISTS,
    RESULT_SUCCESS,
)
from boiler.core.errors import MeasurementUnavailable, ProbeFailure
from boiler.service import TaskResult, run_batch, summarize_results, transcode_file


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"source")
    return path


@pytest.fixture
def folders(sample_config):
    input_dir = sample_config["paths"]["input"]
    output_dir = sample_config["paths"]["output"]
    os.makedirs(input_dir)
    return input_dir, output_dir


class TestTranscodeFile:
    """测试单文件处理"""

    def test_success_moves_temp_to_output(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        source = _touch(Path(input_dir) / "Season 01" / "ep01.mkv")
        fake = make_transcoder(sample_bitrate=8000000, full_bitrates=[8000000])

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())

        assert result.status == RESULT_SUCCESS
        assert result.success
        assert result.outcome.pass_count == 1
        assert result.stats["final_quality"] == 60
        assert result.stats["source_bitrate"] == 20000000
        assert os.path.exists(os.path.join(output_dir, "Season 01", "ep01.fmpg.mp4"))
        # 临时文件与采样片段均已清理
        assert os.listdir(os.path.join(output_dir, "Season 01")) == ["ep01.fmpg.mp4"]

    def test_skip_existing_output(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        source = _touch(Path(input_dir) / "a.mkv")
        _touch(Path(output_dir) / "a.fmpg.mp4")
        fake = make_transcoder()
        asset_probe = make_asset_probe()

        result = transcode_file(str(source), sample_config, fake, fake, asset_probe)

        assert result.status == RESULT_SKIP_EXISTS
        assert asset_probe.calls == []
        assert fake.full_calls == []

    def test_skip_source_already_at_target(self, sample_config, folders, make_transcoder, make_asset_probe):
        """源码率不高于容差上限时不转码"""
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "a.mkv")
        fake = make_transcoder()
        fake.source_bitrate = 8400000

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())

        assert result.status == RESULT_SKIP_BITRATE
        assert result.stats["source_bitrate"] == 8400000
        assert fake.sample_calls == []

    def test_low_source_transcoded_when_skip_disabled(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "a.mkv")
        sample_config["files"]["skip_below_target"] = False
        fake = make_transcoder(sample_bitrate=8000000, full_bitrates=[8000000])
        fake.source_bitrate = 5000000

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())

        assert result.status == RESULT_SUCCESS
        assert "source_bitrate" not in result.stats

    def test_unmeasurable_source_still_transcoded(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "a.mkv")

        class NoSourceBitrate(make_transcoder):
            def measure(self, media_path, duration_seconds=None):
                if media_path == str(source):
                    raise MeasurementUnavailable("无码率")
                return super().measure(media_path, duration_seconds)

        fake = NoSourceBitrate(sample_bitrate=8000000, full_bitrates=[8000000])
        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())
        assert result.status == RESULT_SUCCESS

    def test_target_from_resolution(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "uhd.mkv")
        fake = make_transcoder(sample_bitrate=11000000, full_bitrates=[11000000])

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe(height=2160))

        assert result.stats["target_bitrate"] == 11000000
        assert result.outcome.within_tolerance

    def test_target_override(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "uhd.mkv")
        sample_config["encoding"]["target"]["override_bps"] = 6000000
        fake = make_transcoder(sample_bitrate=6000000, full_bitrates=[6000000])

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe(height=2160))

        assert result.outcome.target.target_bitrate_bps == 6000000

    def test_encode_failure_cleans_temp(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        source = _touch(Path(input_dir) / "a.mkv")
        fake = make_transcoder(sample_bitrate=8000000, fail_full_at=1)

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())

        assert result.status == RESULT_ERROR
        assert not result.success
        assert "第 1 遍编码" in result.error
        assert os.listdir(output_dir) == []

    def test_move_failure_cleans_temp(self, sample_config, folders, make_transcoder, make_asset_probe, monkeypatch):
        input_dir, output_dir = folders
        source = _touch(Path(input_dir) / "a.mkv")

        def failing_move(src, dst):
            raise PermissionError(13, "Permission denied", dst)

        monkeypatch.setattr("boiler.service.shutil.move", failing_move)
        fake = make_transcoder(sample_bitrate=8000000)

        result = transcode_file(str(source), sample_config, fake, fake, make_asset_probe())

        assert result.status == RESULT_ERROR
        assert "Permission denied" in result.error
        assert os.listdir(output_dir) == []

    def test_probe_failure(self, sample_config, folders, make_transcoder):
        input_dir, _ = folders
        source = _touch(Path(input_dir) / "a.mkv")

        class BrokenProbe:
            def probe(self, path):
                raise ProbeFailure(f"无法获取视频分辨率 {path}")

        fake = make_transcoder()
        result = transcode_file(str(source), sample_config, fake, fake, BrokenProbe())
        assert result.status == RESULT_ERROR
        assert "无法获取视频分辨率" in result.error

    def test_interrupt_propagates_and_cleans(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        source = _touch(Path(input_dir) / "a.mkv")

        class Interrupted(make_transcoder):
            def encode_full(self, path, quality, output_path):
                self._write(output_path, quality)
                raise KeyboardInterrupt()

        fake = Interrupted(sample_bitrate=8000000)
        with pytest.raises(KeyboardInterrupt):
            transcode_file(str(source), sample_config, fake, fake, make_asset_probe())
        assert os.listdir(output_dir) == []


class TestRunBatch:
    """测试批处理流程"""

    def test_processes_all_files(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        for name in ("a.mkv", "b.mp4", "done.fmpg.mp4", "keep.orig.mkv"):
            _touch(Path(input_dir) / name)
        fake = make_transcoder(sample_bitrate=8000000)
        asset_probe = make_asset_probe()

        exit_code = run_batch(sample_config, fake, fake, asset_probe)

        assert exit_code == 0
        assert sorted(os.listdir(output_dir)) == ["a.fmpg.mp4", "b.fmpg.mp4"]
        # 带标记的文件不探测
        assert [os.path.basename(p) for p in asset_probe.calls] == ["a.mkv", "b.mp4"]

    def test_failure_continues_with_next_file(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        for name in ("a.mkv", "b.mkv"):
            _touch(Path(input_dir) / name)
        fake = make_transcoder(sample_bitrate=8000000, fail_full_at=1)

        exit_code = run_batch(sample_config, fake, fake, make_asset_probe())

        assert exit_code == 1
        assert os.listdir(output_dir) == ["b.fmpg.mp4"]

    def test_blocked_output_dir_only_fails_that_file(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        _touch(Path(input_dir) / "a" / "one.mkv")
        _touch(Path(input_dir) / "b" / "two.mkv")
        # output/a 是普通文件，无法作为目录创建
        _touch(Path(output_dir) / "a")
        fake = make_transcoder(sample_bitrate=8000000)

        exit_code = run_batch(sample_config, fake, fake, make_asset_probe())

        assert exit_code == 1
        assert os.path.exists(os.path.join(output_dir, "b", "two.fmpg.mp4"))
        assert [os.path.basename(call[0]) for call in fake.full_calls] == ["two.mkv"]

    def test_dry_run(self, sample_config, folders, make_transcoder, make_asset_probe):
        input_dir, output_dir = folders
        _touch(Path(input_dir) / "a.mkv")
        sample_config["dry_run"] = True
        fake = make_transcoder()
        asset_probe = make_asset_probe()

        assert run_batch(sample_config, fake, fake, asset_probe) == 0
        assert asset_probe.calls == []
        assert not os.path.exists(output_dir)

    def test_missing_input(self, sample_config, make_transcoder, make_asset_probe):
        fake = make_transcoder()
        assert run_batch(sample_config, fake, fake, make_asset_probe()) == 1

    def test_empty_input(self, sample_config, folders, make_transcoder, make_asset_probe):
        fake = make_transcoder()
        assert run_batch(sample_config, fake, fake, make_asset_probe()) == 0

    def test_stops_when_shutdown_requested(self, sample_config, folders, make_transcoder, make_asset_probe, monkeypatch):
        input_dir, output_dir = folders
        _touch(Path(input_dir) / "a.mkv")
        monkeypatch.setattr("boiler.service.is_shutdown_requested", lambda: True)
        asset_probe = make_asset_probe()
        fake = make_transcoder()

        assert run_batch(sample_config, fake, fake, asset_probe) == 0
        assert asset_probe.calls == []


class TestSummarizeResults:
    def test_counts(self, asset_1080p, target_8m):
        from boiler.core.models import PassRecord, SearchHistory, SearchResult, StopReason, TranscodeOutcome

        search = SearchResult(60, SearchHistory(), StopReason.CONVERGED)
        missed = TranscodeOutcome(
            asset_1080p, target_8m, search,
            passes=(PassRecord(1, 60, 14050000), PassRecord(2, 52, 7500000), PassRecord(3, 53, 9000000)),
        )
        hit = TranscodeOutcome(asset_1080p, target_8m, search, passes=(PassRecord(1, 60, 8000000),))
        results = [
            TaskResult("a.mkv", RESULT_SUCCESS, outcome=hit),
            TaskResult("b.mkv", RESULT_SUCCESS, outcome=missed),
            TaskResult("c.mkv", RESULT_SKIP_BITRATE),
            TaskResult("d.mkv", RESULT_ERROR, error="[第 1 遍编码] 编码失败"),
        ]

        summary = summarize_results(results)

        assert summary["total"] == 4
        assert summary["success"] == 2
        assert summary["skip_bitrate"] == 1
        assert summary["failed"] == 1
        assert summary["tolerance_miss"] == 1
