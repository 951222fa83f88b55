import json
import os
import re
import time
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import unquote, urlsplit

import aiofiles

from packwright.exceptions import ManifestError, WorkspaceError

VERSION_PATTERN = re.compile(r"[-_](\d+\.\d+(?:\.\d+)?)")


def utc_now() -> str:
    """当前 UTC 时间（ISO 8601）"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def extract_version(filename: str) -> str:
    """从文件名中提取版本号，例如 jei-1.20.1-15.2.0.jar -> 1.20.1"""
    match = VERSION_PATTERN.search(filename)
    return match.group(1) if match else "unknown"


def filename_from_url(url: str, extension: str = ".jar") -> str:
    """从 URL 路径推断文件名，不符合扩展名时生成 mod_<时间戳> 名称"""
    name = os.path.basename(unquote(urlsplit(url).path))
    if not name.endswith(extension):
        name = f"mod_{int(time.time() * 1000)}{extension}"
    return name


async def read_json(path: str) -> Any:
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestError(f"JSON 解析失败: {path}", context={"error": str(e)}) from e


async def write_json(path: str, data: Any, indent: Optional[int] = 2) -> None:
    """写入 JSON，先写临时文件再替换"""
    tmp_path = f"{path}.tmp"
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(data, indent=indent, ensure_ascii=False))
    os.replace(tmp_path, path)


def is_plain_name(name: str) -> bool:
    """name 是否为单个路径组件（不含分隔符，不是 . 或 ..）"""
    return (
        bool(name)
        and name not in (".", "..")
        and "/" not in name
        and "\\" not in name
        and os.sep not in name
    )


def check_name(name: str, what: str, error: type = WorkspaceError) -> str:
    """校验用于拼接路径的名称，不合法时抛出 error"""
    if not isinstance(name, str) or not is_plain_name(name):
        raise error(f"无效的{what}: {name!r}", context={what: name})
    return name
