"""
Packwright 主入口

根据 Settings 组装传输引擎、对账器、目录客户端、工作区存储与整合包管理器，
并共享同一个 aiohttp session。
"""

from typing import Optional

import aiohttp
from loguru import logger

from packwright.config import Settings
from packwright.download import FileVerifier, TransferEngine
from packwright.services import (
    CurseForgeClient,
    ManifestReconciler,
    ModpackManager,
    WorkspaceStore,
)


class Packwright:
    """组件容器，作为异步上下文管理器使用"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        download = self.settings.download

        self._session = aiohttp.ClientSession()
        self.verifier = FileVerifier(algorithm=download.hash_algorithm)
        self.engine = TransferEngine(
            timeout=download.timeout,
            max_redirects=download.max_redirects,
            chunk_size=download.chunk_size,
            verifier=self.verifier,
            session=self._session,
        )
        self.reconciler = ManifestReconciler(
            self.verifier, extension=download.artifact_extension
        )

        self.catalog: Optional[CurseForgeClient] = None
        if self.settings.curseforge.api_key:
            self.catalog = CurseForgeClient(
                self.settings.curseforge.api_key,
                base_url=self.settings.curseforge.base_url,
                session=self._session,
            )
        else:
            logger.debug("未配置 CurseForge API Key，目录功能不可用")

        self.workspaces = WorkspaceStore(
            self.settings.workspace_dir,
            self.settings.modpacks_dir,
            engine=self.engine,
            catalog=self.catalog,
            verifier=self.verifier,
            extension=download.artifact_extension,
        )
        self.modpacks = ModpackManager(
            self.settings.install_config_dir,
            self.settings.install_mods_dir,
            engine=self.engine,
            reconciler=self.reconciler,
            catalog=self.catalog,
            max_concurrent=download.max_concurrent,
        )

    async def close(self):
        self.engine.cancel_all()
        if not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
