"""
Packwright 打包层

包含整合包导出用的 zip 生成器。
"""

from packwright.packager.zip import ZipBuilder

__all__ = [
    "ZipBuilder",
]
