"""
Packwright 下载层

包含传输引擎、批量编排、文件校验与进度回调。
"""

from packwright.download.batch import BatchOrchestrator, BatchStats, ItemState
from packwright.download.progress import LoggingProgress, noop
from packwright.download.transfer import TransferEngine
from packwright.download.verifier import FileVerifier

__all__ = [
    "BatchOrchestrator",
    "BatchStats",
    "ItemState",
    "LoggingProgress",
    "noop",
    "TransferEngine",
    "FileVerifier",
]
