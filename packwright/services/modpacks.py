"""
已安装整合包管理

清单位于 <config_dir>/<id>.json，安装目录位于 <mods_dir>/<id>/。
提供对账、统计以及按清单同步安装目录。
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from packwright.download.batch import BatchOrchestrator
from packwright.download.progress import ItemProgress, OverallProgress
from packwright.download.transfer import TransferEngine
from packwright.exceptions import AlreadyExists, ManifestNotFound, WorkspaceError
from packwright.models import (
    BatchResult,
    InstalledFile,
    Manifest,
    ModpackStats,
    ReconciliationResult,
)
from packwright.services.reconciler import ManifestReconciler
from packwright.utils import check_name, read_json, write_json


@dataclass
class SyncReport:
    """一次同步的结果"""

    reconciliation: ReconciliationResult
    batch: BatchResult
    removed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "reconciliation": self.reconciliation.to_dict(),
            "batch": self.batch.to_dict(),
            "removed": list(self.removed),
        }


class ModpackManager:
    """已安装整合包管理器"""

    def __init__(
        self,
        config_dir: str,
        mods_dir: str,
        engine: Optional[TransferEngine] = None,
        reconciler: Optional[ManifestReconciler] = None,
        catalog=None,
        max_concurrent: int = 1,
    ):
        self.config_dir = config_dir
        self.mods_dir = mods_dir
        self.engine = engine or TransferEngine()
        self._owned_engine = engine is None
        self.reconciler = reconciler or ManifestReconciler(self.engine.verifier)
        self.catalog = catalog
        self.max_concurrent = max_concurrent
        # 安装目录 -> 同步锁，同一目录同一时间只允许一次同步
        self._locks: Dict[str, asyncio.Lock] = {}
        self._orchestrators: Dict[str, BatchOrchestrator] = {}

        os.makedirs(self.config_dir, exist_ok=True)
        os.makedirs(self.mods_dir, exist_ok=True)

    def manifest_path(self, modpack_id: str) -> str:
        return os.path.join(self.config_dir, check_name(modpack_id, "id") + ".json")

    def install_path(self, modpack_id: str) -> str:
        return os.path.join(self.mods_dir, check_name(modpack_id, "id"))

    async def list_available(self) -> List[Manifest]:
        """列出所有可用的整合包清单"""
        manifests = []
        for name in sorted(os.listdir(self.config_dir)):
            if not name.endswith(".json"):
                continue
            try:
                manifests.append(await self.load(name[: -len(".json")]))
            except WorkspaceError as e:
                logger.warning(f"[整合包] 跳过无效清单 {name}: {e}")
        return manifests

    async def load(self, modpack_id: str) -> Manifest:
        path = self.manifest_path(modpack_id)
        if not os.path.isfile(path):
            raise ManifestNotFound(
                f"整合包 {modpack_id} 不存在", context={"path": path}
            )
        return Manifest.from_dict(await read_json(path))

    async def create(self, manifest: Manifest, overwrite: bool = False) -> str:
        """写入整合包清单"""
        path = self.manifest_path(manifest.id)
        if os.path.exists(path) and not overwrite:
            raise AlreadyExists(
                f"整合包 {manifest.id} 已存在", context={"path": path}
            )
        await write_json(path, manifest.to_dict())
        return path

    async def installed_mods(self, modpack_id: str) -> List[InstalledFile]:
        return await self.reconciler.scan(self.install_path(modpack_id))

    async def compare(self, modpack_id: str) -> ReconciliationResult:
        """对比安装目录与清单"""
        manifest = await self.load(modpack_id)
        return await self.reconciler.reconcile(manifest, self.install_path(modpack_id))

    async def stats(self, modpack_id: str) -> ModpackStats:
        manifest = await self.load(modpack_id)
        return await self.reconciler.stats(manifest, self.install_path(modpack_id))

    def delete_mod(self, modpack_id: str, filename: str) -> bool:
        """删除安装目录中的模组文件"""
        check_name(filename, "文件名")
        path = os.path.join(self.install_path(modpack_id), filename)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        logger.info(f"[删除] {modpack_id}/{filename}")
        return True

    async def sync(
        self,
        modpack_id: str,
        only_new: bool = False,
        prune: bool = False,
        on_item_progress: Optional[ItemProgress] = None,
        on_overall_progress: Optional[OverallProgress] = None,
    ) -> SyncReport:
        """
        按清单同步安装目录

        Args:
            modpack_id: 整合包标识
            only_new: 只下载不存在的文件（过期文件保留）
            prune: 删除清单中没有的多余文件
            on_item_progress: 单文件进度回调
            on_overall_progress: 总体进度回调

        Returns:
            SyncReport
        """
        manifest = await self.load(modpack_id)
        target_dir = self.install_path(modpack_id)
        lock = self._locks.setdefault(target_dir, asyncio.Lock())

        async with lock:
            reconciliation = await self.reconciler.reconcile(manifest, target_dir)
            pending = reconciliation.to_sync
            logger.info(
                f"[同步] {modpack_id}: {len(reconciliation.missing)} 缺失, "
                f"{len(reconciliation.outdated)} 过期, {len(reconciliation.extra)} 多余"
            )

            orchestrator = BatchOrchestrator(
                self.engine,
                target_dir,
                catalog=self.catalog,
                platform_version=manifest.minecraft_version,
                max_concurrent=self.max_concurrent,
            )
            self._orchestrators[modpack_id] = orchestrator
            try:
                batch = await orchestrator.run_batch(
                    pending, on_item_progress, on_overall_progress, only_new=only_new
                )
            finally:
                self._orchestrators.pop(modpack_id, None)

            removed = []
            if prune:
                for installed in reconciliation.extra:
                    if self.delete_mod(modpack_id, installed.filename):
                        removed.append(installed.filename)

        return SyncReport(reconciliation=reconciliation, batch=batch, removed=removed)

    def cancel_sync(self, modpack_id: str) -> bool:
        """取消正在进行的同步；没有同步在进行时返回 False"""
        orchestrator = self._orchestrators.get(modpack_id)
        if orchestrator is None:
            return False
        orchestrator.cancel()
        return True

    async def close(self):
        if self._owned_engine:
            await self.engine.close()
