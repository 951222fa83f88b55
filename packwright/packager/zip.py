"""
ZIP 生成器

将导出的整合包目录压缩为 zip。
"""

import asyncio
import os
import shutil
from typing import Optional

from loguru import logger

from packwright.exceptions import ZipError


class ZipBuilder:
    """ZIP 构建器"""

    async def build(
        self,
        source_dir: str,
        output_path: str,
        archive_name: Optional[str] = None,
    ) -> str:
        """
        构建 ZIP 文件

        Args:
            source_dir: 源文件目录
            output_path: 输出目录
            archive_name: 压缩包名称（不含扩展名）

        Returns:
            生成的文件路径
        """
        if not os.path.isdir(source_dir):
            raise ZipError(
                f"源目录不存在: {source_dir}", context={"source_dir": source_dir}
            )

        if archive_name is None:
            archive_name = os.path.basename(os.path.normpath(source_dir))

        os.makedirs(output_path, exist_ok=True)
        base_name = os.path.join(output_path, archive_name)

        try:
            # 在默认执行器中压缩
            zip_path = await asyncio.get_running_loop().run_in_executor(
                None, shutil.make_archive, base_name, "zip", source_dir
            )
        except (OSError, ValueError) as e:
            raise ZipError(
                f"构建 ZIP 失败: {e}",
                context={"source_dir": source_dir, "output_path": output_path},
            ) from e

        logger.success(f"[打包] ZIP 生成成功: {zip_path}")
        return zip_path
