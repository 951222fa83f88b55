"""
工作区 / 清单存储

管理可编辑的整合包工作区：目录结构、modpack.json 的读写与修改、
从 URL 或目录添加模组，以及导出。
"""

import os
import shutil
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from packwright.download.batch import BatchOrchestrator
from packwright.download.progress import (
    ByteProgress,
    ItemProgress,
    OverallProgress,
    noop,
)
from packwright.download.transfer import TransferEngine
from packwright.download.verifier import FileVerifier
from packwright.exceptions import (
    AlreadyExists,
    ConfigError,
    DownloadError,
    ManifestNotFound,
    WorkspaceError,
    WorkspaceNotFound,
)
from packwright.models import (
    ESSENTIAL_FOLDERS,
    OPTIONAL_FOLDERS,
    BatchResult,
    CatalogMod,
    FailedTransfer,
    FolderLayout,
    InstallerInfo,
    Manifest,
    ModDescriptor,
    ModLoader,
    ModloaderInfo,
    ResolvedFile,
    TransferResult,
)
from packwright.packager import ZipBuilder
from packwright.utils import (
    check_name,
    extract_version,
    filename_from_url,
    read_json,
    utc_now,
    write_json,
)

MANIFEST_FILENAME = "modpack.json"


@dataclass
class ExportResult:
    """导出结果"""

    path: str
    manifest: Manifest
    zip_path: Optional[str] = None


class WorkspaceStore:
    """工作区存储"""

    def __init__(
        self,
        workspace_dir: str,
        modpacks_dir: str,
        engine: Optional[TransferEngine] = None,
        catalog=None,
        verifier: Optional[FileVerifier] = None,
        extension: str = ".jar",
    ):
        self.workspace_dir = workspace_dir
        self.modpacks_dir = modpacks_dir
        self.verifier = verifier or FileVerifier()
        self.engine = engine or TransferEngine(verifier=self.verifier)
        self._owned_engine = engine is None
        self.catalog = catalog
        self.extension = extension
        self.zip_builder = ZipBuilder()

        os.makedirs(self.workspace_dir, exist_ok=True)
        os.makedirs(self.modpacks_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # 路径

    def workspace_path(self, modpack_id: str) -> str:
        return os.path.join(self.workspace_dir, check_name(modpack_id, "id"))

    def manifest_path(self, modpack_id: str) -> str:
        return os.path.join(self.workspace_path(modpack_id), MANIFEST_FILENAME)

    def exists(self, modpack_id: str) -> bool:
        return os.path.isdir(self.workspace_path(modpack_id))

    def _require(self, modpack_id: str) -> str:
        work_dir = self.workspace_path(modpack_id)
        if not os.path.isdir(work_dir):
            raise WorkspaceNotFound(
                f"工作区不存在: {modpack_id}", context={"id": modpack_id}
            )
        return work_dir

    # ------------------------------------------------------------------
    # 读写

    async def load(self, modpack_id: str) -> Manifest:
        """读取工作区清单"""
        self._require(modpack_id)
        path = self.manifest_path(modpack_id)
        if not os.path.isfile(path):
            raise ManifestNotFound(
                f"清单不存在: {modpack_id}", context={"path": path}
            )
        return Manifest.from_dict(await read_json(path))

    async def save(self, manifest: Manifest) -> None:
        """写入工作区清单"""
        self._require(manifest.id)
        await write_json(self.manifest_path(manifest.id), manifest.to_dict())

    async def list_workspaces(self) -> List[Manifest]:
        """列出所有含有清单的工作区"""
        manifests = []
        for name in sorted(os.listdir(self.workspace_dir)):
            if not os.path.isfile(os.path.join(self.workspace_dir, name, MANIFEST_FILENAME)):
                continue
            try:
                manifests.append(await self.load(name))
            except WorkspaceError as e:
                logger.warning(f"[工作区] 跳过无效清单 {name}: {e}")
        return manifests

    # ------------------------------------------------------------------
    # 创建 / 导入 / 删除

    async def create(self, modpack_id: str, **metadata: Any) -> Manifest:
        """
        创建新的工作区

        Args:
            modpack_id: 工作区标识
            **metadata: name, version, minecraft_version, modloader_type,
                modloader_version, author, description, required_ram, java_version

        Returns:
            新建的清单
        """
        work_dir = self.workspace_path(modpack_id)
        if os.path.exists(work_dir):
            raise AlreadyExists(
                f"工作区 '{modpack_id}' 已存在", context={"id": modpack_id}
            )

        os.makedirs(work_dir)
        for folder in ESSENTIAL_FOLDERS:
            os.makedirs(os.path.join(work_dir, folder), exist_ok=True)

        manifest = self._new_manifest(modpack_id, metadata)
        await self.save(manifest)
        logger.success(f"[工作区] 已创建 '{modpack_id}'")
        return manifest

    async def import_from_minecraft(
        self, minecraft_path: str, modpack_id: str, **metadata: Any
    ) -> Tuple[Manifest, List[str]]:
        """
        从现有 Minecraft 安装导入

        Returns:
            (清单, 导入的目录列表)
        """
        if not os.path.isdir(minecraft_path):
            raise WorkspaceNotFound(
                f"Minecraft 目录不存在: {minecraft_path}",
                context={"path": minecraft_path},
            )

        work_dir = self.workspace_path(modpack_id)
        if os.path.exists(work_dir):
            raise AlreadyExists(
                f"工作区 '{modpack_id}' 已存在", context={"id": modpack_id}
            )
        os.makedirs(work_dir)

        imported = []
        for folder in ESSENTIAL_FOLDERS + OPTIONAL_FOLDERS:
            source = os.path.join(minecraft_path, folder)
            if os.path.isdir(source):
                shutil.copytree(source, os.path.join(work_dir, folder))
                imported.append(folder)
        logger.info(f"[导入] 已复制目录: {', '.join(imported) or '无'}")

        mods_dir = os.path.join(work_dir, "mods")
        detected = self.detect_modloader(mods_dir)

        metadata.setdefault("description", "Imported from Minecraft installation")
        manifest = self._new_manifest(modpack_id, metadata)
        if "modloader_type" not in metadata:
            manifest.modloader = detected
        manifest.imported_from = minecraft_path
        manifest.folders = FolderLayout(
            essential=[f for f in ESSENTIAL_FOLDERS if f in imported],
            optional=[f for f in OPTIONAL_FOLDERS if f in imported],
        )
        manifest.mods = await self.scan_mods(mods_dir)

        await self.save(manifest)
        logger.success(
            f"[导入] '{modpack_id}' 导入完成，共 {len(manifest.mods)} 个模组"
        )
        return manifest, imported

    def delete(self, modpack_id: str) -> None:
        """删除工作区"""
        work_dir = self._require(modpack_id)
        shutil.rmtree(work_dir)
        logger.info(f"[工作区] 已删除 '{modpack_id}'")

    def _new_manifest(self, modpack_id: str, metadata: Dict[str, Any]) -> Manifest:
        return Manifest(
            id=modpack_id,
            name=metadata.get("name") or modpack_id,
            version=metadata.get("version") or "1.0.0",
            minecraft_version=metadata.get("minecraft_version") or "1.20.1",
            modloader=ModloaderInfo(
                type=metadata.get("modloader_type") or ModLoader.FORGE.value,
                version=metadata.get("modloader_version") or "latest",
            ),
            author=metadata.get("author") or "Unknown",
            description=metadata.get("description") or "",
            required_ram=metadata.get("required_ram") or "4G",
            java_version=str(metadata.get("java_version") or "17"),
            created_at=utc_now(),
            folders=FolderLayout(essential=list(ESSENTIAL_FOLDERS), optional=[]),
        )

    # ------------------------------------------------------------------
    # 模组扫描

    def detect_modloader(self, mods_dir: str) -> ModloaderInfo:
        """根据模组文件名推测加载器类型，同时出现时 Fabric 优先"""
        if not os.path.isdir(mods_dir):
            return ModloaderInfo(type=ModLoader.FORGE.value, version="unknown")

        has_fabric = has_forge = False
        for name in os.listdir(mods_dir):
            if not name.endswith(self.extension):
                continue
            lower = name.lower()
            if "fabric" in lower or "modmenu" in lower:
                has_fabric = True
            if "forge" in lower:
                has_forge = True

        if has_fabric:
            return ModloaderInfo(type=ModLoader.FABRIC.value, version="unknown")
        return ModloaderInfo(type=ModLoader.FORGE.value, version="unknown")

    async def scan_mods(self, mods_dir: str) -> List[ModDescriptor]:
        """扫描 mods 目录生成清单条目"""
        if not os.path.isdir(mods_dir):
            return []

        mods = []
        for name in sorted(os.listdir(mods_dir)):
            path = os.path.join(mods_dir, name)
            if not name.endswith(self.extension) or not os.path.isfile(path):
                continue
            mods.append(
                ModDescriptor(
                    filename=name,
                    hash=await self.verifier.calc_hash(path),
                    size=os.path.getsize(path),
                    required=True,
                    version=extract_version(name),
                )
            )
        return mods

    async def update_mods_list(
        self, modpack_id: str, known: Iterable[ModDescriptor] = ()
    ) -> Manifest:
        """
        按 mods 目录内容刷新清单中的模组列表

        已有条目的来源信息（url、目录 id 等）会保留；known 提供新文件的来源信息。
        """
        manifest = await self.load(modpack_id)
        scanned = await self.scan_mods(
            os.path.join(self.workspace_path(modpack_id), "mods")
        )

        sources = {m.filename: m for m in manifest.mods}
        sources.update({m.filename: m for m in known})
        rank = {m.filename: i for i, m in enumerate(manifest.mods)}

        merged = []
        for mod in scanned:
            source = sources.get(mod.filename)
            if source is not None:
                mod.url = source.url
                mod.remote_id = source.remote_id
                mod.file_id = source.file_id
                mod.description = source.description
                mod.required = source.required
                if source.version and source.version != "unknown":
                    mod.version = source.version
                mod.extra = dict(source.extra)
            merged.append(mod)
        merged.sort(key=lambda m: (rank.get(m.filename, len(rank)), m.filename))

        manifest.mods = merged
        await self.save(manifest)
        logger.debug(f"[工作区] '{modpack_id}' 模组列表已刷新 ({len(merged)})")
        return manifest

    # ------------------------------------------------------------------
    # 目录与文件

    async def add_folder(self, modpack_id: str, folder: str) -> Manifest:
        """添加目录；不在声明中的目录记为可选目录"""
        work_dir = self._require(modpack_id)
        os.makedirs(os.path.join(work_dir, check_name(folder, "目录名")), exist_ok=True)

        manifest = await self.load(modpack_id)
        if folder not in manifest.folders:
            manifest.folders.optional.append(folder)
            await self.save(manifest)
        return manifest

    async def add_file(self, modpack_id: str, folder: str, source_path: str) -> str:
        """复制文件到工作区目录，返回目标路径"""
        work_dir = self._require(modpack_id)
        if not os.path.isfile(source_path):
            raise WorkspaceError(
                f"源文件不存在: {source_path}", context={"path": source_path}
            )

        folder_path = os.path.join(work_dir, check_name(folder, "目录名"))
        os.makedirs(folder_path, exist_ok=True)
        dest_path = os.path.join(folder_path, os.path.basename(source_path))
        shutil.copy2(source_path, dest_path)

        if folder == "mods":
            await self.update_mods_list(modpack_id)
        return dest_path

    async def set_installer(self, modpack_id: str, installer_path: str) -> InstallerInfo:
        """设置加载器安装器"""
        manifest = await self.load(modpack_id)
        filename = os.path.basename(installer_path)
        dest_path = os.path.join(self.workspace_path(modpack_id), filename)
        shutil.copy2(installer_path, dest_path)

        loader = ModLoader.guess(filename)
        manifest.installer = InstallerInfo(
            filename=filename,
            type=loader.value,
            hash=await self.verifier.calc_hash(dest_path),
        )
        await self.save(manifest)
        return manifest.installer

    async def update_metadata(
        self, modpack_id: str, updates: Dict[str, Any]
    ) -> Manifest:
        """以清单文档的键更新元数据"""
        manifest = await self.load(modpack_id)
        data = manifest.to_dict()
        data.update(updates)
        data["id"] = manifest.id
        data["updatedAt"] = utc_now()

        updated = Manifest.from_dict(data)
        await self.save(updated)
        return updated

    # ------------------------------------------------------------------
    # 添加模组

    async def add_mod_from_url(
        self,
        modpack_id: str,
        url: str,
        on_progress: Optional[ByteProgress] = None,
        expected_hash: Optional[str] = None,
    ) -> TransferResult:
        """从直链下载模组到工作区"""
        work_dir = self._require(modpack_id)
        filename = filename_from_url(url, self.extension)
        destination = os.path.join(work_dir, "mods", filename)

        result = await self.engine.fetch(url, destination, expected_hash, on_progress)
        await self.update_mods_list(
            modpack_id, known=[ModDescriptor(filename=filename, url=url)]
        )
        return result

    async def add_mod_from_catalog(
        self,
        modpack_id: str,
        remote_id: int,
        minecraft_version: Optional[str] = None,
        on_progress: Optional[ByteProgress] = None,
    ) -> TransferResult:
        """从目录添加模组，下载后按目录提供的摘要校验"""
        catalog = self._require_catalog()
        manifest = await self.load(modpack_id)
        minecraft_version = minecraft_version or manifest.minecraft_version

        resolved = await catalog.resolve_download(remote_id, minecraft_version)
        check_name(resolved.filename, "模组文件名", DownloadError)
        destination = os.path.join(
            self.workspace_path(modpack_id), "mods", resolved.filename
        )
        result = await self.engine.fetch(
            resolved.url, destination, resolved.hash, on_progress
        )
        await self.update_mods_list(modpack_id, known=[resolved.to_descriptor()])
        return result

    async def add_mods_from_catalog(
        self,
        modpack_id: str,
        remote_ids: Iterable[int],
        minecraft_version: Optional[str] = None,
        on_item_progress: Optional[ItemProgress] = None,
        on_overall_progress: Optional[OverallProgress] = None,
    ) -> BatchResult:
        """
        批量从目录添加模组

        先逐个解析下载信息，再由 BatchOrchestrator 下载到 mods 目录。
        单个失败不影响其余：解析失败以模组 id 记录，下载失败以文件名记录。
        """
        catalog = self._require_catalog()
        manifest = await self.load(modpack_id)
        minecraft_version = minecraft_version or manifest.minecraft_version
        remote_ids = list(remote_ids)
        total = len(remote_ids)
        on_overall = on_overall_progress or noop

        resolved_files: List[ResolvedFile] = []
        unresolved: List[FailedTransfer] = []
        for remote_id in remote_ids:
            try:
                resolved = await catalog.resolve_download(remote_id, minecraft_version)
                check_name(resolved.filename, "模组文件名", DownloadError)
            except Exception as e:
                logger.error(f"[错误] 解析模组 {remote_id} 失败: {e}")
                unresolved.append(FailedTransfer(filename=str(remote_id), error=str(e)))
                on_overall(len(unresolved), total)
                continue
            resolved_files.append(resolved)

        offset = len(unresolved)
        orchestrator = BatchOrchestrator(
            self.engine, os.path.join(self.workspace_path(modpack_id), "mods")
        )
        result = await orchestrator.run_batch(
            [r.to_descriptor() for r in resolved_files],
            on_item_progress,
            lambda completed, _: on_overall(offset + completed, total),
        )

        downloaded = {r.filename for r in result.successful}
        await self.update_mods_list(
            modpack_id,
            known=[r.to_descriptor() for r in resolved_files if r.filename in downloaded],
        )
        result.failed = unresolved + result.failed
        return result

    async def search(
        self, modpack_id: str, query: str, minecraft_version: Optional[str] = None
    ) -> List[CatalogMod]:
        """在目录中搜索，默认使用工作区的 Minecraft 版本"""
        catalog = self._require_catalog()
        if minecraft_version is None:
            minecraft_version = (await self.load(modpack_id)).minecraft_version
        return await catalog.search(query, minecraft_version)

    def _require_catalog(self):
        if self.catalog is None:
            raise ConfigError("未配置目录 API (curseforge.api_key)")
        return self.catalog

    # ------------------------------------------------------------------
    # 导出

    async def export(self, modpack_id: str, as_zip: bool = False) -> ExportResult:
        """导出工作区到 modpacks 目录，可选打包为 zip"""
        manifest = await self.load(modpack_id)
        work_dir = self.workspace_path(modpack_id)
        final_path = os.path.join(self.modpacks_dir, modpack_id)
        os.makedirs(final_path, exist_ok=True)

        for folder in manifest.folders.all():
            source = os.path.join(work_dir, folder)
            if os.path.isdir(source):
                shutil.copytree(
                    source, os.path.join(final_path, folder), dirs_exist_ok=True
                )

        if manifest.installer:
            installer = os.path.join(work_dir, manifest.installer.filename)
            if os.path.isfile(installer):
                shutil.copy2(installer, os.path.join(final_path, manifest.installer.filename))

        shutil.copy2(
            self.manifest_path(modpack_id), os.path.join(final_path, MANIFEST_FILENAME)
        )

        zip_path = None
        if as_zip:
            zip_path = await self.zip_builder.build(
                final_path, self.modpacks_dir, archive_name=modpack_id
            )

        logger.success(f"[导出] '{modpack_id}' -> {final_path}")
        return ExportResult(path=final_path, manifest=manifest, zip_path=zip_path)

    async def close(self):
        if self._owned_engine:
            await self.engine.close()
