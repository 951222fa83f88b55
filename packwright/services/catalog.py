"""
目录 API 客户端

提供统一的目录客户端接口，当前实现 CurseForge。
核心只依赖两个操作：search 与 resolve_download。
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import aiohttp
from loguru import logger

from packwright.config import CURSEFORGE_BASE_URL
from packwright.exceptions import (
    APIError,
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
)
from packwright.models import CatalogFile, CatalogMod, ResolvedFile

MINECRAFT_GAME_ID = 432


class CatalogClient(ABC):
    """模组目录客户端接口"""

    @abstractmethod
    async def search(
        self, query: str, platform_version: Optional[str] = None
    ) -> List[CatalogMod]:
        """按关键字搜索模组"""

    @abstractmethod
    async def resolve_download(
        self,
        mod_id: int,
        platform_version: Optional[str] = None,
        file_id: Optional[int] = None,
    ) -> ResolvedFile:
        """
        解析模组的下载信息 {filename, url, hash, version}

        指定 file_id 时解析该文件，否则取与 platform_version 兼容的最新文件。
        """

    async def close(self):
        """释放资源"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class CurseForgeClient(CatalogClient):
    """CurseForge API 客户端"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = CURSEFORGE_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owned_session = True
        return self._session

    async def _request(self, endpoint: str, params: Optional[dict] = None):
        """发送 API 请求，返回响应中的 data 字段"""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        url = f"{self.base_url}{endpoint}"
        async with self.session.get(
            url, params=params, headers=headers, timeout=self._timeout
        ) as response:
            if response.status == 200:
                payload = await response.json(content_type=None)
                return payload.get("data") if isinstance(payload, dict) else payload

            message = f"API 请求失败 (状态码: {response.status})"
            if response.status == 404:
                raise APINotFoundError(message, response=response)
            if response.status == 429:
                raise APIRateLimitError(message, response=response)
            if response.status >= 500:
                raise APIServerError(message, response=response)
            raise APIError(message, response=response)

    async def search(
        self,
        query: str,
        platform_version: Optional[str] = None,
        page_size: int = 20,
    ) -> List[CatalogMod]:
        """搜索模组"""
        params = {
            "gameId": MINECRAFT_GAME_ID,
            "searchFilter": query,
            "pageSize": page_size,
        }
        if platform_version:
            params["gameVersion"] = platform_version

        data = await self._request("/v1/mods/search", params) or []
        return [CatalogMod.from_curseforge(item) for item in data]

    async def get_mod(self, mod_id: int) -> CatalogMod:
        """获取模组详情"""
        return CatalogMod.from_curseforge(await self._request(f"/v1/mods/{mod_id}"))

    async def get_mod_files(
        self, mod_id: int, platform_version: Optional[str] = None
    ) -> List[CatalogFile]:
        """获取模组文件列表"""
        params = {"gameVersion": platform_version} if platform_version else None
        data = await self._request(f"/v1/mods/{mod_id}/files", params) or []
        return [CatalogFile.from_curseforge(item) for item in data]

    async def get_file(self, mod_id: int, file_id: int) -> CatalogFile:
        """获取单个文件"""
        data = await self._request(f"/v1/mods/{mod_id}/files/{file_id}")
        return CatalogFile.from_curseforge(data)

    async def get_download_url(self, mod_id: int, file_id: int) -> str:
        """获取文件下载地址"""
        return await self._request(f"/v1/mods/{mod_id}/files/{file_id}/download-url")

    async def get_latest_file(
        self, mod_id: int, platform_version: Optional[str] = None
    ) -> CatalogFile:
        """获取最新文件（按 fileDate 排序）"""
        files = await self.get_mod_files(mod_id, platform_version)
        if not files:
            raise APINotFoundError(
                f"模组 {mod_id} 没有适用于 {platform_version} 的文件",
                context={"mod_id": mod_id, "platform_version": platform_version},
            )
        return max(files, key=lambda f: f.file_date)

    async def resolve_download(
        self,
        mod_id: int,
        platform_version: Optional[str] = None,
        file_id: Optional[int] = None,
    ) -> ResolvedFile:
        mod = await self.get_mod(mod_id)
        if file_id is not None:
            catalog_file = await self.get_file(mod_id, file_id)
        else:
            catalog_file = await self.get_latest_file(mod_id, platform_version)

        url = catalog_file.download_url or await self.get_download_url(
            mod_id, catalog_file.id
        )
        logger.debug(f"[目录] {mod.name} -> {catalog_file.filename}")
        return ResolvedFile(
            filename=catalog_file.filename,
            url=url,
            hash=catalog_file.md5,
            version=catalog_file.display_name,
            remote_id=mod_id,
            file_id=catalog_file.id,
            description=mod.summary,
            size=catalog_file.size,
        )

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()
