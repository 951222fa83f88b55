"""
Packwright 服务层

包含业务逻辑服务：清单对账、工作区存储、已安装整合包管理、目录 API 客户端。
"""

from packwright.services.catalog import CatalogClient, CurseForgeClient
from packwright.services.modpacks import ModpackManager, SyncReport
from packwright.services.reconciler import ManifestReconciler
from packwright.services.workspace import ExportResult, WorkspaceStore

__all__ = [
    "CatalogClient",
    "CurseForgeClient",
    "ModpackManager",
    "SyncReport",
    "ManifestReconciler",
    "ExportResult",
    "WorkspaceStore",
]
