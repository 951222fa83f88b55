"""
Packwright 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional
import aiohttp


class PackwrightError(Exception):
    """Packwright 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(PackwrightError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class APIError(PackwrightError):
    """目录 API 相关错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response is not None:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E200"


class APINotFoundError(APIError):
    """API 资源不存在"""

    def _get_default_code(self) -> str:
        return "E404"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def _get_default_code(self) -> str:
        return "E429"


class APIServerError(APIError):
    """API 服务器错误"""

    def _get_default_code(self) -> str:
        return "E500"


class DownloadError(PackwrightError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadNetworkError(DownloadError):
    """下载网络错误"""

    def _get_default_code(self) -> str:
        return "E301"


class IntegrityMismatch(DownloadError):
    """下载后校验值不一致"""

    def __init__(
        self,
        message: str,
        expected: str,
        actual: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.expected = expected
        self.actual = actual
        self.context.update({"expected": expected, "actual": actual})

    def _get_default_code(self) -> str:
        return "E302"


class DownloadFileError(DownloadError):
    """下载文件操作错误"""

    def _get_default_code(self) -> str:
        return "E303"


class TransferFailed(DownloadError):
    """HTTP 状态码不是 200"""

    def __init__(
        self,
        message: str,
        status: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.status = status
        self.context["status"] = status

    def _get_default_code(self) -> str:
        return "E310"


class TransferTimeout(DownloadError):
    """传输超时（连接或空闲）"""

    def _get_default_code(self) -> str:
        return "E311"


class TooManyRedirects(DownloadError):
    """重定向次数超过上限"""

    def _get_default_code(self) -> str:
        return "E312"


class TransferCancelled(DownloadError):
    """传输被取消"""

    def _get_default_code(self) -> str:
        return "E313"


class PackagerError(PackwrightError):
    """打包相关错误"""

    def _get_default_code(self) -> str:
        return "E400"


class ZipError(PackagerError):
    """ZIP 生成错误"""

    def _get_default_code(self) -> str:
        return "E402"


class WorkspaceError(PackwrightError):
    """工作区 / 清单相关错误"""

    def _get_default_code(self) -> str:
        return "E600"


class WorkspaceNotFound(WorkspaceError):
    """工作区不存在"""

    def _get_default_code(self) -> str:
        return "E601"


class ManifestNotFound(WorkspaceError):
    """清单文件不存在"""

    def _get_default_code(self) -> str:
        return "E602"


class AlreadyExists(WorkspaceError):
    """工作区或清单已存在"""

    def _get_default_code(self) -> str:
        return "E603"


class ManifestError(WorkspaceError):
    """清单内容无效"""

    def _get_default_code(self) -> str:
        return "E604"


__all__ = [
    # 基础异常
    "PackwrightError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # API 异常
    "APIError",
    "APINotFoundError",
    "APIRateLimitError",
    "APIServerError",
    # 下载异常
    "DownloadError",
    "DownloadNetworkError",
    "IntegrityMismatch",
    "DownloadFileError",
    "TransferFailed",
    "TransferTimeout",
    "TooManyRedirects",
    "TransferCancelled",
    # 打包异常
    "PackagerError",
    "ZipError",
    # 工作区异常
    "WorkspaceError",
    "WorkspaceNotFound",
    "ManifestNotFound",
    "AlreadyExists",
    "ManifestError",
]
