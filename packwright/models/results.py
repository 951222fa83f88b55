"""
结果数据模型

对账结果、传输结果与批量下载结果。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from packwright.models.manifest import ModDescriptor


@dataclass
class InstalledFile:
    """安装目录中的一个文件（扫描得到，不持久化）"""

    filename: str
    path: str
    size: int
    modified: datetime
    hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "path": self.path,
            "size": self.size,
            "modified": self.modified.isoformat(),
            "hash": self.hash,
        }


@dataclass
class OutdatedMod:
    """存在于磁盘但校验值与清单不一致的模组"""

    descriptor: ModDescriptor
    current_hash: Optional[str]

    @property
    def filename(self) -> str:
        return self.descriptor.filename

    def to_dict(self) -> Dict[str, Any]:
        data = self.descriptor.to_dict()
        data["currentHash"] = self.current_hash
        return data


@dataclass
class ReconciliationResult:
    """
    清单与安装目录的对账结果。

    清单中的每个文件名恰好出现在 missing / outdated / up_to_date 之一，
    不在清单中的已安装文件全部出现在 extra。
    """

    missing: List[ModDescriptor] = field(default_factory=list)
    outdated: List[OutdatedMod] = field(default_factory=list)
    up_to_date: List[ModDescriptor] = field(default_factory=list)
    extra: List[InstalledFile] = field(default_factory=list)
    # 清单中的文件名顺序
    order: List[str] = field(default_factory=list, repr=False, compare=False)

    @property
    def to_sync(self) -> List[ModDescriptor]:
        """需要下载的条目（缺失 + 过期），保持清单顺序"""
        pending = self.missing + [o.descriptor for o in self.outdated]
        if self.order:
            rank = {name: i for i, name in enumerate(self.order)}
            pending.sort(key=lambda m: rank.get(m.filename, len(rank)))
        return pending

    @property
    def in_sync(self) -> bool:
        return not (self.missing or self.outdated or self.extra)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing": [m.to_dict() for m in self.missing],
            "outdated": [o.to_dict() for o in self.outdated],
            "upToDate": [m.to_dict() for m in self.up_to_date],
            "extra": [f.to_dict() for f in self.extra],
        }


@dataclass
class TransferResult:
    """单个文件的传输结果"""

    filename: str
    path: str
    size: int
    hash: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "filename": self.filename,
            "path": self.path,
            "size": self.size,
            "hash": self.hash,
            "url": self.url,
        }


@dataclass
class FailedTransfer:
    """失败的条目"""

    filename: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "error": self.error}


@dataclass
class BatchResult:
    """一次批量下载的结果，三个列表长度之和等于提交的条目数"""

    successful: List[TransferResult] = field(default_factory=list)
    failed: List[FailedTransfer] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed) + len(self.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful": [r.to_dict() for r in self.successful],
            "failed": [f.to_dict() for f in self.failed],
            "skipped": list(self.skipped),
        }


@dataclass
class ModpackStats:
    """整合包统计"""

    total_mods: int = 0
    total_size: int = 0
    missing: int = 0
    outdated: int = 0
    extra: int = 0
    up_to_date: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalMods": self.total_mods,
            "totalSize": self.total_size,
            "missing": self.missing,
            "outdated": self.outdated,
            "extra": self.extra,
            "upToDate": self.up_to_date,
        }
