#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
异常定义

所有致命错误都会中止当前视频的处理，批处理层捕获后继续下一个文件。
未收敛（迭代上限）与容差未命中不是异常，只记录警告。
"""

from typing import Optional


class BoilerError(Exception):
    """所有可预期错误的基类，stage 标明出错阶段（采样第几轮/第几遍编码）"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def with_stage(self, stage: str) -> "BoilerError":
        """补充出错阶段，已有阶段时保留最内层信息"""
        if self.stage is None:
            self.stage = stage
        return self

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ProbeFailure(BoilerError):
    """无法获取源视频的分辨率或时长"""


class MeasurementUnavailable(BoilerError):
    """无法测得编码结果的码率"""


class EncodeFailure(BoilerError):
    """FFmpeg 编码失败"""

    def __init__(self, message: str, stage: Optional[str] = None, stderr: str = ""):
        super().__init__(message, stage)
        self.stderr = stderr
