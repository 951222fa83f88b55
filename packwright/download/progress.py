"""
进度回调

所有回调都是可选的，未提供时使用 noop。回调在每个挂起点同步调用。
"""

from typing import Callable, Dict, Optional

from loguru import logger

# (已下载字节, 总字节或 None, 百分比)
ByteProgress = Callable[[int, Optional[int], float], None]
# (文件名, 已下载字节, 总字节或 None, 百分比)
ItemProgress = Callable[[str, int, Optional[int], float], None]
# (已完成数, 总数)
OverallProgress = Callable[[int, int], None]


def noop(*args, **kwargs) -> None:
    """空回调"""


def percent_of(downloaded: int, total: Optional[int]) -> float:
    """计算百分比，总大小未知时为 0"""
    if not total:
        return 0.0
    return min(downloaded / total * 100, 100.0)


class LoggingProgress:
    """
    通过日志输出下载进度

    单个文件每前进 step 个百分点记录一次，批量进度每完成一项记录一次。
    """

    def __init__(self, step: float = 5.0):
        self.step = step
        self._last: Dict[str, float] = {}

    def on_item_progress(
        self, filename: str, downloaded: int, total: Optional[int], percent: float
    ) -> None:
        if not total:
            return
        last = self._last.get(filename, 0.0)
        if percent - last >= self.step or (percent >= 100 and last < 100):
            logger.info(f"[进度] {filename}: {percent:.1f}%")
            self._last[filename] = percent

    def on_overall_progress(self, completed: int, total: int) -> None:
        logger.info(f"[总进度] {completed}/{total}")
        if completed >= total:
            self._last.clear()
