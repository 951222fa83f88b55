"""
批量下载编排

按清单顺序逐个驱动传输引擎，汇总成功 / 失败 / 跳过，并发出单项与总体两级进度。
单个条目失败不会中断整个批次。
"""

import asyncio
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from packwright.download.progress import ItemProgress, OverallProgress, noop
from packwright.download.transfer import TransferEngine
from packwright.exceptions import DownloadError, TransferCancelled
from packwright.utils import is_plain_name
from packwright.models import (
    BatchResult,
    FailedTransfer,
    ModDescriptor,
    TransferResult,
)

Outcome = Union[TransferResult, FailedTransfer, str]


class ItemState(Enum):
    """条目状态"""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class BatchStats:
    """下载统计"""

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    bytes_downloaded: int = 0


class BatchOrchestrator:
    """
    批量下载编排器

    默认严格串行；max_concurrent > 1 时使用有界的工作协程池，
    结果仍按提交顺序汇总。
    """

    def __init__(
        self,
        engine: TransferEngine,
        target_dir: str,
        catalog=None,
        platform_version: Optional[str] = None,
        max_concurrent: int = 1,
    ):
        self.engine = engine
        self.target_dir = target_dir
        self.catalog = catalog
        self.platform_version = platform_version
        self.max_concurrent = max(1, max_concurrent)
        self.stats = BatchStats()
        self.states: Dict[str, ItemState] = {}
        # 文件名 -> 本批次正在进行的传输 key
        self._keys: Dict[str, str] = {}
        self._cancelled = False

    async def run_batch(
        self,
        items: Iterable[ModDescriptor],
        on_item_progress: Optional[ItemProgress] = None,
        on_overall_progress: Optional[OverallProgress] = None,
        only_new: bool = False,
    ) -> BatchResult:
        """
        下载一批条目

        Args:
            items: 待下载的清单条目
            on_item_progress: (filename, downloaded, total, percent)
            on_overall_progress: (completed, total)，每处理完一项调用一次
            only_new: 目标文件已存在时跳过

        Returns:
            BatchResult
        """
        items = list(items)
        total = len(items)
        on_item = on_item_progress or noop
        on_overall = on_overall_progress or noop

        self._cancelled = False
        self.stats = BatchStats(total=total)
        self.states = {item.filename: ItemState.PENDING for item in items}
        outcomes: List[Optional[Outcome]] = [None] * total
        completed = 0

        def advance():
            nonlocal completed
            completed += 1
            self.stats.completed = completed
            on_overall(completed, total)

        logger.info(f"[批量] 开始处理 {total} 个文件 -> {self.target_dir}")

        if self.max_concurrent == 1 or total <= 1:
            for index, item in enumerate(items):
                outcomes[index] = await self._process(item, on_item, only_new)
                advance()
        else:
            queue: asyncio.Queue = asyncio.Queue()
            for entry in enumerate(items):
                queue.put_nowait(entry)

            async def worker():
                while True:
                    try:
                        index, item = queue.get_nowait()
                    except asyncio.QueueEmpty:
                        return
                    outcomes[index] = await self._process(item, on_item, only_new)
                    advance()

            workers = [
                asyncio.create_task(worker(), name=f"transfer-{i}")
                for i in range(min(self.max_concurrent, total))
            ]
            try:
                await asyncio.gather(*workers)
            except BaseException:
                for task in workers:
                    task.cancel()
                raise

        result = self._collect(outcomes)
        logger.info(
            f"[批量] 完成: {len(result.successful)} 成功, "
            f"{len(result.failed)} 失败, {len(result.skipped)} 跳过"
        )
        return result

    def cancel(self) -> int:
        """
        取消剩余条目

        本批次正在进行的传输被中止，尚未开始的条目记为失败。
        共享同一传输引擎的其他批次不受影响。返回中止的传输数量。
        """
        self._cancelled = True
        aborted = sum(1 for key in list(self._keys.values()) if self.engine.cancel(key))
        logger.warning(f"[取消] 批量下载已取消，中止 {aborted} 个传输")
        return aborted

    def cancel_item(self, filename: str) -> bool:
        """取消本批次中指定文件的传输；该文件不在下载中时返回 False"""
        key = self._keys.get(filename)
        return key is not None and self.engine.cancel(key)

    async def _process(
        self, item: ModDescriptor, on_item: ItemProgress, only_new: bool
    ) -> Outcome:
        filename = item.filename

        if self._cancelled:
            return self._fail(filename, TransferCancelled(f"传输已取消: {filename}"))

        if not is_plain_name(filename):
            return self._fail(
                filename,
                DownloadError(f"无效的文件名: {filename!r}", context={"file": filename}),
            )

        destination = os.path.abspath(os.path.join(self.target_dir, filename))

        if only_new and os.path.exists(destination):
            logger.info(f"[跳过] '{filename}' 已存在")
            self.states[filename] = ItemState.SKIPPED
            self.stats.skipped += 1
            return filename

        self.states[filename] = ItemState.DOWNLOADING

        def forward(downloaded: int, total: Optional[int], percent: float):
            on_item(filename, downloaded, total, percent)

        try:
            url, expected_hash = await self._source(item)
            if self._cancelled:
                raise TransferCancelled(f"传输已取消: {filename}")
            self._keys[filename] = destination
            result = await self.engine.fetch(
                url, destination, expected_hash, on_progress=forward, key=destination
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return self._fail(filename, e)
        finally:
            self._keys.pop(filename, None)

        self.states[filename] = ItemState.SUCCEEDED
        self.stats.bytes_downloaded += result.size
        return result

    async def _source(self, item: ModDescriptor) -> Tuple[str, Optional[str]]:
        """确定下载地址与预期摘要，必要时通过目录解析"""
        if item.url:
            return item.url, item.hash

        if item.remote_id is not None and self.catalog is not None:
            resolved = await self.catalog.resolve_download(
                item.remote_id, self.platform_version, file_id=item.file_id
            )
            logger.debug(f"[解析] {item.filename} -> {resolved.url}")
            return resolved.url, item.hash or resolved.hash

        raise DownloadError(
            f"没有可用的下载地址: {item.filename}",
            context={"file": item.filename},
        )

    def _fail(self, filename: str, error: Exception) -> FailedTransfer:
        logger.error(f"[错误] 下载 '{filename}' 失败: {error}")
        self.states[filename] = ItemState.FAILED
        self.stats.failed += 1
        return FailedTransfer(filename=filename, error=str(error))

    @staticmethod
    def _collect(outcomes: List[Optional[Outcome]]) -> BatchResult:
        result = BatchResult()
        for outcome in outcomes:
            if isinstance(outcome, TransferResult):
                result.successful.append(outcome)
            elif isinstance(outcome, FailedTransfer):
                result.failed.append(outcome)
            elif isinstance(outcome, str):
                result.skipped.append(outcome)
        return result
