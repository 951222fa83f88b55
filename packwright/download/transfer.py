"""
传输引擎

将单个 URL 流式下载到本地路径：跟随重定向、报告字节进度、校验摘要，
失败时清理未完成的文件。正在进行的传输可以按 key（默认为目标文件的绝对路径）取消。
"""

import asyncio
import os
from typing import Dict, Optional, Set
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import aiohttp
import aiofiles
from loguru import logger

from packwright.download.progress import ByteProgress, noop, percent_of
from packwright.download.verifier import FileVerifier
from packwright.exceptions import (
    DownloadError,
    DownloadFileError,
    DownloadNetworkError,
    IntegrityMismatch,
    TooManyRedirects,
    TransferCancelled,
    TransferFailed,
    TransferTimeout,
)
from packwright.models import TransferResult

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
PART_SUFFIX = ".part"


class TransferEngine:
    """传输引擎"""

    def __init__(
        self,
        timeout: float = 30.0,
        max_redirects: int = 10,
        chunk_size: int = 8192,
        verifier: Optional[FileVerifier] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size
        self.verifier = verifier or FileVerifier()
        self._client_timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=timeout, sock_read=timeout
        )
        self._session = session
        self._owned_session = session is None
        # key -> 正在进行的传输任务
        self._active: Dict[str, asyncio.Task] = {}
        self._aborted: Set[str] = set()

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._client_timeout)
            self._owned_session = True
        return self._session

    @property
    def active(self) -> list[str]:
        """正在进行的传输"""
        return [key for key, task in self._active.items() if not task.done()]

    async def fetch(
        self,
        url: str,
        destination: str,
        expected_hash: Optional[str] = None,
        on_progress: Optional[ByteProgress] = None,
        key: Optional[str] = None,
    ) -> TransferResult:
        """
        下载单个文件

        Args:
            url: 下载地址（http / https / file）
            destination: 目标文件路径
            expected_hash: 预期摘要，不匹配时删除文件并抛出 IntegrityMismatch
            on_progress: 字节进度回调
            key: 取消用的标识，默认为目标文件的绝对路径

        Returns:
            TransferResult
        """
        destination = os.path.abspath(destination)
        key = key or destination
        if key in self._active:
            raise DownloadError(f"传输已在进行中: {key}", context={"key": key})

        task = asyncio.ensure_future(
            self._transfer(url, destination, expected_hash, on_progress or noop)
        )
        self._active[key] = task
        try:
            return await task
        except asyncio.CancelledError:
            if key not in self._aborted:
                raise
            raise TransferCancelled(
                f"传输已取消: {key}", context={"url": url, "key": key}
            )
        finally:
            self._active.pop(key, None)
            self._aborted.discard(key)

    def cancel(self, key: str) -> bool:
        """取消指定传输；没有正在进行的传输时返回 False"""
        task = self._active.get(key)
        if task is None or task.done():
            return False
        self._aborted.add(key)
        task.cancel()
        logger.warning(f"[取消] '{key}'")
        return True

    def cancel_all(self) -> int:
        """取消所有正在进行的传输，返回取消数量"""
        return sum(1 for key in list(self._active) if self.cancel(key))

    async def _transfer(
        self,
        url: str,
        destination: str,
        expected_hash: Optional[str],
        on_progress: ByteProgress,
    ) -> TransferResult:
        filename = os.path.basename(destination)
        os.makedirs(os.path.dirname(destination), exist_ok=True)

        current = url
        try:
            for _ in range(self.max_redirects + 1):
                scheme = urlsplit(current).scheme.lower()
                if scheme == "file":
                    return await self._copy_local(
                        current, destination, expected_hash, on_progress
                    )
                if scheme not in ("http", "https"):
                    raise DownloadError(
                        f"不支持的 URL 协议: {current}", context={"url": current}
                    )

                async with self.session.get(
                    current, allow_redirects=False, timeout=self._client_timeout
                ) as response:
                    if response.status in REDIRECT_STATUSES:
                        location = response.headers.get("Location")
                        if not location:
                            raise TransferFailed(
                                f"HTTP {response.status} 缺少 Location",
                                status=response.status,
                                context={"url": current},
                            )
                        target = urljoin(current, location)
                        logger.debug(f"[重定向] {filename}: {current} -> {target}")
                        current = target
                        continue

                    if response.status != 200:
                        raise TransferFailed(
                            f"HTTP {response.status}",
                            status=response.status,
                            context={"url": current, "file": filename},
                        )

                    logger.info(f"[开始] 下载: {filename}")
                    return await self._stream(
                        response, current, destination, expected_hash, on_progress
                    )
        except asyncio.TimeoutError as e:
            raise TransferTimeout(
                f"下载超时 ({self.timeout:.0f}s): {filename}",
                context={"url": current, "file": filename},
            ) from e
        except aiohttp.ClientError as e:
            raise DownloadNetworkError(
                f"网络错误: {e}", context={"url": current, "file": filename}
            ) from e

        raise TooManyRedirects(
            f"重定向次数超过 {self.max_redirects}: {filename}",
            context={"url": url, "last_url": current},
        )

    async def _stream(
        self,
        response: aiohttp.ClientResponse,
        url: str,
        destination: str,
        expected_hash: Optional[str],
        on_progress: ByteProgress,
    ) -> TransferResult:
        """将响应体写入 .part 文件，同时计算摘要与字节数"""
        part_path = destination + PART_SUFFIX
        total = response.content_length
        digest = self.verifier.new_digest()
        downloaded = 0

        try:
            async with aiofiles.open(part_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    await f.write(chunk)
                    digest.update(chunk)
                    downloaded += len(chunk)
                    on_progress(downloaded, total, percent_of(downloaded, total))
        except BaseException:
            self._discard(part_path)
            raise

        return self._finalize(
            part_path, destination, url, downloaded, digest.hexdigest(), expected_hash
        )

    async def _copy_local(
        self,
        url: str,
        destination: str,
        expected_hash: Optional[str],
        on_progress: ByteProgress,
    ) -> TransferResult:
        """复制 file:// 地址指向的本地文件"""
        src_path = url2pathname(urlsplit(url).path)
        if not os.path.isfile(src_path):
            raise DownloadFileError(
                f"本地文件不存在: {src_path}", context={"url": url}
            )

        logger.info(f"[复制] 本地文件: {os.path.basename(src_path)}")
        part_path = destination + PART_SUFFIX
        total = os.path.getsize(src_path)
        digest = self.verifier.new_digest()
        copied = 0

        try:
            async with aiofiles.open(src_path, "rb") as src, aiofiles.open(
                part_path, "wb"
            ) as dst:
                while True:
                    chunk = await src.read(self.chunk_size)
                    if not chunk:
                        break
                    await dst.write(chunk)
                    digest.update(chunk)
                    copied += len(chunk)
                    on_progress(copied, total, percent_of(copied, total))
        except BaseException:
            self._discard(part_path)
            raise

        return self._finalize(
            part_path, destination, url, copied, digest.hexdigest(), expected_hash
        )

    def _finalize(
        self,
        part_path: str,
        destination: str,
        url: str,
        size: int,
        actual_hash: str,
        expected_hash: Optional[str],
    ) -> TransferResult:
        filename = os.path.basename(destination)

        if expected_hash and not self.verifier.matches(actual_hash, expected_hash):
            self._discard(part_path)
            self._discard(destination)
            raise IntegrityMismatch(
                f"校验失败: {filename}",
                expected=expected_hash,
                actual=actual_hash,
                context={"file": filename, "url": url},
            )

        try:
            os.replace(part_path, destination)
        except OSError as e:
            self._discard(part_path)
            raise DownloadFileError(
                f"无法写入目标文件: {destination}", context={"error": str(e)}
            ) from e

        logger.success(f"[完成] '{filename}' 下载完成 ({size} bytes)")
        return TransferResult(
            filename=filename,
            path=destination,
            size=size,
            hash=actual_hash,
            url=url,
        )

    @staticmethod
    def _discard(path: str):
        """删除未完成的文件"""
        try:
            if os.path.isfile(path):
                os.remove(path)
        except OSError as e:
            logger.warning(f"[清理] 无法删除 {path}: {e}")

    async def close(self):
        """关闭 session"""
        self.cancel_all()
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
