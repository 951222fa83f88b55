"""
配置模块

从 toml / json / yaml 文件加载设置，并支持环境变量覆盖。
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import toml
import yaml

from packwright.exceptions import ConfigParseError, ConfigValidationError

DEFAULT_HOME = os.path.join(Path.home(), ".packwright")
CURSEFORGE_BASE_URL = "https://api.curseforge.com"


@dataclass
class DownloadConfig:
    """下载相关配置"""

    timeout: float = 30.0
    max_redirects: int = 10
    chunk_size: int = 8192
    max_concurrent: int = 1
    hash_algorithm: str = "md5"
    artifact_extension: str = ".jar"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadConfig":
        cfg = cls(
            timeout=float(data.get("timeout", 30.0)),
            max_redirects=int(data.get("max_redirects", 10)),
            chunk_size=int(data.get("chunk_size", 8192)),
            max_concurrent=int(data.get("max_concurrent", 1)),
            hash_algorithm=str(data.get("hash_algorithm", "md5")).lower(),
            artifact_extension=str(data.get("artifact_extension", ".jar")),
        )
        cfg.validate()
        return cfg

    def validate(self):
        if self.timeout <= 0:
            raise ConfigValidationError("download.timeout 必须大于 0")
        if self.max_redirects < 0:
            raise ConfigValidationError("download.max_redirects 不能为负数")
        if self.chunk_size <= 0:
            raise ConfigValidationError("download.chunk_size 必须大于 0")
        if self.max_concurrent < 1:
            raise ConfigValidationError("download.max_concurrent 至少为 1")
        if self.hash_algorithm not in ("md5", "sha1", "sha256", "sha512"):
            raise ConfigValidationError(
                f"不支持的哈希算法: {self.hash_algorithm}",
                context={"hash_algorithm": self.hash_algorithm},
            )


@dataclass
class InstallConfig:
    """已安装整合包的位置（为空时位于 home 下）"""

    config_dir: Optional[str] = None
    mods_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallConfig":
        return cls(config_dir=data.get("config_dir"), mods_dir=data.get("mods_dir"))


@dataclass
class CurseForgeConfig:
    """CurseForge 目录配置"""

    api_key: Optional[str] = None
    base_url: str = CURSEFORGE_BASE_URL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurseForgeConfig":
        return cls(
            api_key=data.get("api_key"),
            base_url=data.get("base_url", CURSEFORGE_BASE_URL).rstrip("/"),
        )


@dataclass
class Settings:
    """Packwright 设置"""

    home: str = DEFAULT_HOME
    log_file: Optional[str] = None
    download: DownloadConfig = field(default_factory=DownloadConfig)
    install: InstallConfig = field(default_factory=InstallConfig)
    curseforge: CurseForgeConfig = field(default_factory=CurseForgeConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigValidationError("配置文件顶层必须是一个表")
        return cls(
            home=os.path.expanduser(data.get("home", DEFAULT_HOME)),
            log_file=data.get("log_file"),
            download=DownloadConfig.from_dict(data.get("download", {})),
            install=InstallConfig.from_dict(data.get("install", {})),
            curseforge=CurseForgeConfig.from_dict(data.get("curseforge", {})),
        )

    @property
    def workspace_dir(self) -> str:
        return os.path.join(self.home, "workspace")

    @property
    def modpacks_dir(self) -> str:
        return os.path.join(self.home, "modpacks")

    @property
    def install_config_dir(self) -> str:
        return self.install.config_dir or os.path.join(self.home, "installed")

    @property
    def install_mods_dir(self) -> str:
        return self.install.mods_dir or os.path.join(self.home, "instances")

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "Settings":
        """应用环境变量覆盖"""
        environ = os.environ if environ is None else environ
        if environ.get("PACKWRIGHT_HOME"):
            self.home = os.path.expanduser(environ["PACKWRIGHT_HOME"])
        if environ.get("PACKWRIGHT_CURSEFORGE_KEY"):
            self.curseforge.api_key = environ["PACKWRIGHT_CURSEFORGE_KEY"]
        return self


def read_config_file(config_path: str) -> dict:
    """按扩展名读取配置文件"""
    path = Path(config_path)

    if not path.exists():
        raise ConfigParseError(
            f"配置文件不存在: {config_path}", context={"path": config_path}
        )

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            return toml.load(config_path)
        elif suffix == ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"配置文件解析失败: {e}", context={"path": config_path}
        ) from e

    raise ConfigParseError(
        f"不支持的配置文件格式: {suffix}", context={"path": config_path}
    )


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """加载设置；未指定配置文件时使用默认值"""
    data = read_config_file(config_path) if config_path else {}
    return Settings.from_dict(data).apply_env(environ)
