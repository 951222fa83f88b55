"""
Packwright 数据模型包

包含清单模型、结果模型和目录 API 模型定义。
"""

from packwright.models.manifest import (
    ESSENTIAL_FOLDERS,
    OPTIONAL_FOLDERS,
    ModLoader,
    ModDescriptor,
    ModloaderInfo,
    FolderLayout,
    InstallerInfo,
    Manifest,
)
from packwright.models.results import (
    InstalledFile,
    OutdatedMod,
    ReconciliationResult,
    TransferResult,
    FailedTransfer,
    BatchResult,
    ModpackStats,
)
from packwright.models.catalog import (
    CatalogMod,
    CatalogFile,
    ResolvedFile,
)

__all__ = [
    # 清单模型
    "ESSENTIAL_FOLDERS",
    "OPTIONAL_FOLDERS",
    "ModLoader",
    "ModDescriptor",
    "ModloaderInfo",
    "FolderLayout",
    "InstallerInfo",
    "Manifest",
    # 结果模型
    "InstalledFile",
    "OutdatedMod",
    "ReconciliationResult",
    "TransferResult",
    "FailedTransfer",
    "BatchResult",
    "ModpackStats",
    # 目录 API 模型
    "CatalogMod",
    "CatalogFile",
    "ResolvedFile",
]
