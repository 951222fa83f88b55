"""
目录 API 数据模型

定义远程模组目录（CurseForge）返回的项目信息与文件信息。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from packwright.models.manifest import ModDescriptor

# CurseForge 文件哈希算法编号
HASH_ALGO_SHA1 = 1
HASH_ALGO_MD5 = 2


@dataclass
class CatalogMod:
    """
    目录中的模组项目。
    """

    id: int
    name: str
    authors: List[str] = field(default_factory=list)
    summary: str = ""
    slug: str = ""

    @classmethod
    def from_curseforge(cls, data: dict) -> "CatalogMod":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            authors=[a.get("name", "") for a in data.get("authors", [])],
            summary=data.get("summary", ""),
            slug=data.get("slug", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "authors": list(self.authors),
            "summary": self.summary,
            "slug": self.slug,
        }


@dataclass
class CatalogFile:
    """目录中某个模组的一个文件"""

    id: int
    filename: str
    display_name: str
    file_date: str
    download_url: Optional[str] = None
    hashes: Dict[int, str] = field(default_factory=dict)
    size: Optional[int] = None

    @classmethod
    def from_curseforge(cls, data: dict) -> "CatalogFile":
        return cls(
            id=data["id"],
            filename=data.get("fileName", ""),
            display_name=data.get("displayName", ""),
            file_date=data.get("fileDate", ""),
            download_url=data.get("downloadUrl"),
            hashes={h["algo"]: h["value"] for h in data.get("hashes", [])},
            size=data.get("fileLength"),
        )

    @property
    def md5(self) -> Optional[str]:
        return self.hashes.get(HASH_ALGO_MD5)


@dataclass
class ResolvedFile:
    """
    解析得到的可下载文件：filename, url, hash 以及来源标识。
    """

    filename: str
    url: str
    hash: Optional[str] = None
    version: Optional[str] = None
    remote_id: Optional[int] = None
    file_id: Optional[int] = None
    description: Optional[str] = None
    size: Optional[int] = None

    def to_descriptor(self) -> ModDescriptor:
        """转换为清单条目"""
        return ModDescriptor(
            filename=self.filename,
            url=self.url,
            hash=self.hash,
            size=self.size,
            required=True,
            version=self.version,
            description=self.description,
            remote_id=self.remote_id,
            file_id=self.file_id,
        )
