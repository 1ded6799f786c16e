#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
数据模型

搜索过程中用到的值对象均为不可变 dataclass，每个视频的搜索拥有独立的历史记录。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class VideoAsset:
    """源视频（探测一次，处理期间不变）"""

    path: str
    duration_seconds: float
    height_pixels: int


@dataclass(frozen=True)
class TargetProfile:
    """目标码率及容差区间"""

    target_bitrate_bps: int
    tolerance_fraction: float = 0.05

    def __post_init__(self):
        if self.target_bitrate_bps <= 0:
            raise ValueError(f"目标码率必须为正数: {self.target_bitrate_bps}")
        if not 0 < self.tolerance_fraction < 1:
            raise ValueError(f"码率容差必须在 (0, 1) 之间: {self.tolerance_fraction}")

    @property
    def lower_bound(self) -> float:
        return self.target_bitrate_bps * (1 - self.tolerance_fraction)

    @property
    def upper_bound(self) -> float:
        return self.target_bitrate_bps * (1 + self.tolerance_fraction)

    def contains(self, bitrate: float) -> bool:
        """码率是否落在容差区间内（含边界）"""
        return self.lower_bound <= bitrate <= self.upper_bound

    def deviation(self, bitrate: float) -> float:
        """相对目标的偏差比例，正数表示偏高"""
        return (bitrate - self.target_bitrate_bps) / self.target_bitrate_bps


@dataclass(frozen=True)
class SampleWindow:
    """采样片段"""

    start_offset_seconds: float
    duration_seconds: float


@dataclass(frozen=True)
class QualityAttempt:
    """一次采样迭代：质量值与各片段平均码率"""

    quality_value: int
    measured_bitrate_bps: float


class SearchHistory:
    """只追加的采样历史，只在一次质量搜索内有效"""

    def __init__(self):
        self._attempts: List[QualityAttempt] = []

    def append(self, attempt: QualityAttempt) -> None:
        self._attempts.append(attempt)

    def qualities(self) -> List[int]:
        return [a.quality_value for a in self._attempts]

    def recent(self, count: int) -> Tuple[QualityAttempt, ...]:
        if count <= 0:
            return ()
        return tuple(self._attempts[-count:])

    @property
    def last(self) -> Optional[QualityAttempt]:
        return self._attempts[-1] if self._attempts else None

    def __len__(self) -> int:
        return len(self._attempts)

    def __iter__(self) -> Iterator[QualityAttempt]:
        return iter(tuple(self._attempts))

    def __getitem__(self, index):
        return self._attempts[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, SearchHistory):
            return NotImplemented
        return self._attempts == other._attempts

    def __repr__(self) -> str:
        return f"SearchHistory({self._attempts!r})"


class StopReason(Enum):
    """质量搜索结束原因"""

    CONVERGED = "converged"  # 平均码率落入容差区间
    OSCILLATION = "oscillation"  # 质量值循环，取最接近目标的一个
    BOUND_SATURATED = "bound_saturated"  # 已到 0/100 边界无法继续调整
    ITERATION_CAP = "iteration_cap"  # 达到迭代上限，未收敛


@dataclass(frozen=True)
class SearchResult:
    """质量搜索结果"""

    quality: int
    history: SearchHistory
    stop_reason: StopReason

    @property
    def converged(self) -> bool:
        return self.stop_reason == StopReason.CONVERGED


@dataclass(frozen=True)
class PassRecord:
    """一次完整编码"""

    pass_number: int
    quality_value: int
    measured_bitrate_bps: float


@dataclass(frozen=True)
class TranscodeOutcome:
    """单个视频的最终结果"""

    asset: VideoAsset
    target: TargetProfile
    search: SearchResult
    passes: Tuple[PassRecord, ...] = field(default_factory=tuple)
    output_path: Optional[str] = None

    @property
    def pass_count(self) -> int:
        return len(self.passes)

    @property
    def final_quality(self) -> int:
        return self.passes[-1].quality_value

    @property
    def final_bitrate_bps(self) -> float:
        return self.passes[-1].measured_bitrate_bps

    @property
    def within_tolerance(self) -> bool:
        return self.target.contains(self.final_bitrate_bps)

    @property
    def deviation_fraction(self) -> float:
        return self.target.deviation(self.final_bitrate_bps)
