"""
清单对账服务

比较清单声明的模组与安装目录中的实际文件，分为 缺失 / 过期 / 最新 / 多余 四类。
"""

import os
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from loguru import logger

from packwright.download.verifier import FileVerifier
from packwright.models import (
    InstalledFile,
    Manifest,
    ModDescriptor,
    ModpackStats,
    OutdatedMod,
    ReconciliationResult,
)


class ManifestReconciler:
    """清单对账器"""

    def __init__(
        self,
        verifier: Optional[FileVerifier] = None,
        extension: str = ".jar",
    ):
        self.verifier = verifier or FileVerifier()
        self.extension = extension

    async def scan(self, directory: str) -> List[InstalledFile]:
        """
        扫描目录中的模组文件

        Args:
            directory: 安装目录

        Returns:
            按文件名排序的已安装文件；目录不存在时为空列表
        """
        if not os.path.isdir(directory):
            return []

        installed = []
        for name in sorted(os.listdir(directory)):
            if not name.endswith(self.extension):
                continue
            path = os.path.join(directory, name)
            if not os.path.isfile(path):
                continue
            stat = os.stat(path)
            installed.append(
                InstalledFile(
                    filename=name,
                    path=path,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime),
                    hash=await self.verifier.calc_hash(path),
                )
            )
        return installed

    async def reconcile(
        self,
        manifest: Union[Manifest, Sequence[ModDescriptor]],
        directory: str,
    ) -> ReconciliationResult:
        """
        对账

        Args:
            manifest: 清单或清单条目列表
            directory: 安装目录（不存在时视为空目录）

        Returns:
            ReconciliationResult
        """
        mods = manifest.mods if isinstance(manifest, Manifest) else list(manifest)
        result = self.classify(mods, await self.scan(directory))
        logger.debug(
            f"[对账] {directory}: 缺失 {len(result.missing)}, "
            f"过期 {len(result.outdated)}, 最新 {len(result.up_to_date)}, "
            f"多余 {len(result.extra)}"
        )
        return result

    def classify(
        self, mods: Sequence[ModDescriptor], installed: Sequence[InstalledFile]
    ) -> ReconciliationResult:
        """按文件名将清单条目与已安装文件分类（区分大小写）"""
        lookup: Dict[str, InstalledFile] = {f.filename: f for f in installed}

        result = ReconciliationResult(order=[m.filename for m in mods])
        for mod in mods:
            found = lookup.pop(mod.filename, None)
            if found is None:
                result.missing.append(mod)
            elif mod.hash and not self.verifier.matches(found.hash, mod.hash):
                result.outdated.append(
                    OutdatedMod(descriptor=mod, current_hash=found.hash)
                )
            else:
                result.up_to_date.append(mod)

        # 未被清单匹配的文件
        result.extra = list(lookup.values())
        return result

    async def stats(
        self,
        manifest: Union[Manifest, Sequence[ModDescriptor]],
        directory: str,
    ) -> ModpackStats:
        """统计安装目录与清单的差异"""
        mods = manifest.mods if isinstance(manifest, Manifest) else list(manifest)
        installed = await self.scan(directory)
        result = self.classify(mods, installed)
        return ModpackStats(
            total_mods=len(installed),
            total_size=sum(f.size for f in installed),
            missing=len(result.missing),
            outdated=len(result.outdated),
            extra=len(result.extra),
            up_to_date=len(result.up_to_date),
        )
