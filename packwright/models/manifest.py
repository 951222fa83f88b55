"""
清单数据模型

定义整合包清单 (modpack.json) 及其中的模组条目。磁盘上使用 camelCase 键，
Python 中使用 snake_case 属性。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from packwright.exceptions import ManifestError
from packwright.utils import check_name


ESSENTIAL_FOLDERS = ["mods", "config"]
OPTIONAL_FOLDERS = [
    "resourcepacks",
    "shaderpacks",
    "scripts",
    "defaultconfigs",
    "kubejs",
    "openloader",
    "schematics",
    "journeymap",
    "saves",
]


class ModLoader(Enum):
    """模组加载器"""

    FORGE = "forge"
    FABRIC = "fabric"
    QUILT = "quilt"
    NEOFORGE = "neoforge"
    UNKNOWN = "unknown"

    @classmethod
    def guess(cls, name: str) -> "ModLoader":
        """根据文件名猜测加载器类型"""
        lower = name.lower()
        for loader in (cls.NEOFORGE, cls.FABRIC, cls.QUILT, cls.FORGE):
            if loader.value in lower:
                return loader
        return cls.UNKNOWN


_DESCRIPTOR_KEYS = {
    "filename",
    "url",
    "hash",
    "size",
    "required",
    "version",
    "description",
    "curseForgeId",
    "fileId",
}


@dataclass
class ModDescriptor:
    """清单中的一个模组条目，以 filename 作为对账键"""

    filename: str
    url: Optional[str] = None
    hash: Optional[str] = None
    size: Optional[int] = None
    required: bool = True
    version: Optional[str] = None
    description: Optional[str] = None
    remote_id: Optional[int] = None
    file_id: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModDescriptor":
        if not isinstance(data, dict) or not data.get("filename"):
            raise ManifestError("模组条目缺少 filename", context={"entry": data})
        return cls(
            filename=data["filename"],
            url=data.get("url") or None,
            hash=data.get("hash") or None,
            size=data.get("size"),
            required=bool(data.get("required", True)),
            version=data.get("version"),
            description=data.get("description"),
            remote_id=data.get("curseForgeId"),
            file_id=data.get("fileId"),
            extra={k: v for k, v in data.items() if k not in _DESCRIPTOR_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"filename": self.filename}
        if self.url:
            data["url"] = self.url
        if self.hash:
            data["hash"] = self.hash
        if self.size is not None:
            data["size"] = self.size
        data["required"] = self.required
        if self.version is not None:
            data["version"] = self.version
        if self.description:
            data["description"] = self.description
        if self.remote_id is not None:
            data["curseForgeId"] = self.remote_id
        if self.file_id is not None:
            data["fileId"] = self.file_id
        data.update(self.extra)
        return data


@dataclass
class ModloaderInfo:
    """加载器类型与版本"""

    type: str = ModLoader.FORGE.value
    version: str = "latest"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ModloaderInfo":
        data = data or {}
        return cls(
            type=data.get("type", ModLoader.FORGE.value),
            version=data.get("version", "latest"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "version": self.version}


@dataclass
class FolderLayout:
    """整合包包含的目录"""

    essential: List[str] = field(default_factory=lambda: list(ESSENTIAL_FOLDERS))
    optional: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FolderLayout":
        data = data or {}
        return cls(
            essential=list(data.get("essential", ESSENTIAL_FOLDERS)),
            optional=list(data.get("optional", [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"essential": list(self.essential), "optional": list(self.optional)}

    def all(self) -> List[str]:
        return self.essential + self.optional

    def __contains__(self, folder: str) -> bool:
        return folder in self.essential or folder in self.optional


@dataclass
class InstallerInfo:
    """加载器安装器"""

    filename: str
    type: str
    hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["InstallerInfo"]:
        if not data:
            return None
        return cls(
            filename=data["filename"],
            type=data.get("type", ModLoader.UNKNOWN.value),
            hash=data.get("hash"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "type": self.type, "hash": self.hash}


@dataclass
class Manifest:
    """
    整合包清单。

    mods 按声明顺序保存，filename 在清单内唯一。
    """

    id: str
    name: str
    version: str = "1.0.0"
    minecraft_version: str = "1.20.1"
    modloader: ModloaderInfo = field(default_factory=ModloaderInfo)
    author: str = "Unknown"
    description: str = ""
    required_ram: str = "4G"
    java_version: str = "17"
    folders: FolderLayout = field(default_factory=FolderLayout)
    mods: List[ModDescriptor] = field(default_factory=list)
    installer: Optional[InstallerInfo] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    imported_from: Optional[str] = None

    def __post_init__(self):
        check_name(self.id, "id", ManifestError)
        if self.installer is not None:
            check_name(self.installer.filename, "安装器文件名", ManifestError)

        seen = set()
        for mod in self.mods:
            check_name(mod.filename, "模组文件名", ManifestError)
            if mod.filename in seen:
                raise ManifestError(
                    f"清单中存在重复的模组文件: {mod.filename}",
                    context={"manifest": self.id, "filename": mod.filename},
                )
            seen.add(mod.filename)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        if not isinstance(data, dict) or not data.get("id"):
            raise ManifestError("清单缺少 id 字段")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            version=data.get("version", "1.0.0"),
            minecraft_version=data.get("minecraftVersion", "1.20.1"),
            modloader=ModloaderInfo.from_dict(data.get("modloader")),
            author=data.get("author", "Unknown"),
            description=data.get("description", ""),
            required_ram=data.get("requiredRam", "4G"),
            java_version=str(data.get("javaVersion", "17")),
            folders=FolderLayout.from_dict(data.get("folders")),
            mods=[ModDescriptor.from_dict(m) for m in data.get("mods") or []],
            installer=InstallerInfo.from_dict(data.get("installer")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            imported_from=data.get("importedFrom"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "minecraftVersion": self.minecraft_version,
            "modloader": self.modloader.to_dict(),
            "author": self.author,
            "description": self.description,
            "requiredRam": self.required_ram,
            "javaVersion": self.java_version,
        }
        if self.created_at:
            data["createdAt"] = self.created_at
        if self.updated_at:
            data["updatedAt"] = self.updated_at
        if self.imported_from:
            data["importedFrom"] = self.imported_from
        data["folders"] = self.folders.to_dict()
        data["mods"] = [m.to_dict() for m in self.mods]
        data["installer"] = self.installer.to_dict() if self.installer else None
        return data

    def get_mod(self, filename: str) -> Optional[ModDescriptor]:
        for mod in self.mods:
            if mod.filename == filename:
                return mod
        return None

    def summary(self) -> Dict[str, Any]:
        """列表展示用的简要信息"""
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "minecraftVersion": self.minecraft_version,
        }
