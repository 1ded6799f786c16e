# 核心模块
"""码率目标搜索核心功能"""

from boiler.core.models import (
    VideoAsset,
    TargetProfile,
    SampleWindow,
    QualityAttempt,
    SearchHistory,
    SearchResult,
    StopReason,
    PassRecord,
    TranscodeOutcome,
)
from boiler.core.errors import (
    BoilerError,
    ProbeFailure,
    MeasurementUnavailable,
    EncodeFailure,
)
from boiler.core.target import calculate_target_bitrate, resolve_target
from boiler.core.planner import plan_samples
from boiler.core.control import adjust_quality, interpolate_quality
from boiler.core.video import FFprobeBitrateProbe, FFprobeAssetProbe, measure_bitrate
from boiler.core.encoder import FFmpegEncoder, execute_ffmpeg
from boiler.core.search import find_quality
from boiler.core.passes import run_passes, transcode_to_target

__all__ = [
    "VideoAsset",
    "TargetProfile",
    "SampleWindow",
    "QualityAttempt",
    "SearchHistory",
    "SearchResult",
    "StopReason",
    "PassRecord",
    "TranscodeOutcome",
    "BoilerError",
    "ProbeFailure",
    "MeasurementUnavailable",
    "EncodeFailure",
    "calculate_target_bitrate",
    "resolve_target",
    "plan_samples",
    "adjust_quality",
    "interpolate_quality",
    "FFprobeBitrateProbe",
    "FFprobeAssetProbe",
    "measure_bitrate",
    "FFmpegEncoder",
    "execute_ffmpeg",
    "find_quality",
    "run_passes",
    "transcode_to_target",
]
