"""
文件校验器

流式计算文件摘要，并与预期值比较（十六进制不区分大小写）。
"""

import hashlib
import os
from typing import AsyncIterable, Iterable, Optional, Union

import aiofiles


class FileVerifier:
    """文件校验器"""

    def __init__(self, algorithm: str = "md5", chunk_size: int = 65536):
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def new_digest(self):
        """创建一个新的摘要对象"""
        return hashlib.new(self.algorithm)

    @staticmethod
    def matches(actual: Optional[str], expected: Optional[str]) -> bool:
        """比较两个十六进制摘要"""
        if actual is None or expected is None:
            return False
        return actual.strip().lower() == expected.strip().lower()

    async def digest_stream(
        self, chunks: Union[AsyncIterable[bytes], Iterable[bytes]]
    ) -> str:
        """
        逐块折叠计算摘要

        Args:
            chunks: 字节块的（异步）可迭代对象

        Returns:
            十六进制摘要
        """
        digest = self.new_digest()
        if hasattr(chunks, "__aiter__"):
            async for chunk in chunks:
                digest.update(chunk)
        else:
            for chunk in chunks:
                digest.update(chunk)
        return digest.hexdigest()

    async def calc_hash(self, file_path: str) -> Optional[str]:
        """
        计算文件的摘要

        Args:
            file_path: 文件路径

        Returns:
            十六进制摘要或 None（如果文件不存在）
        """
        if not os.path.isfile(file_path):
            return None

        digest = self.new_digest()
        async with aiofiles.open(file_path, "rb") as f:
            while True:
                data = await f.read(self.chunk_size)
                if not data:
                    break
                digest.update(data)
        return digest.hexdigest()

    async def verify(self, file_path: str, expected: str) -> bool:
        """
        校验文件摘要是否匹配

        Args:
            file_path: 文件路径
            expected: 预期摘要

        Returns:
            是否匹配；文件不存在时返回 False
        """
        if not os.path.isfile(file_path):
            return False
        return self.matches(await self.calc_hash(file_path), expected)

