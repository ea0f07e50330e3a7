"""
modresolve 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

import aiohttp


class ModResolveError(Exception):
    """modresolve 基础异常类"""

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


class ConfigError(ModResolveError):
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


class APIError(ModResolveError):
    """API 相关错误"""

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


class APIForbiddenError(APIError):
    """API 拒绝访问"""

    def _get_default_code(self) -> str:
        return "E403"


class APITimeoutError(APIError):
    """API 请求超时"""

    def _get_default_code(self) -> str:
        return "E408"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def _get_default_code(self) -> str:
        return "E429"


class APIServerError(APIError):
    """API 服务器错误"""

    def _get_default_code(self) -> str:
        return "E500"


class ModFileError(ModResolveError):
    """本地模组文件读取错误"""

    def _get_default_code(self) -> str:
        return "E300"


class AnalysisError(ModResolveError):
    """JAR 元数据分析错误"""

    def _get_default_code(self) -> str:
        return "E350"


class ValidationError(ModResolveError):
    """参数验证错误（缺少必填参数、路径无效等）"""

    def _get_default_code(self) -> str:
        return "E600"


class ErrorCategory(Enum):
    """错误分类"""

    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SERVER = "server"
    NETWORK = "network"
    UNKNOWN = "unknown"


def classify_error(error: Union[BaseException, str, None]) -> ErrorCategory:
    """
    根据错误信息中的关键字对错误进行粗略分类

    已知的 API 异常子类优先按类型判断，其余情况按消息字符串匹配。
    """
    if isinstance(error, APITimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, APINotFoundError):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, APIForbiddenError):
        return ErrorCategory.FORBIDDEN
    if isinstance(error, APIServerError):
        return ErrorCategory.SERVER

    if error is None:
        return ErrorCategory.UNKNOWN
    message = (error.message if isinstance(error, ModResolveError) else str(error)).lower()

    if "timeout" in message or "timed out" in message:
        return ErrorCategory.TIMEOUT
    if "404" in message or "not found" in message:
        return ErrorCategory.NOT_FOUND
    if "403" in message or "forbidden" in message:
        return ErrorCategory.FORBIDDEN
    if "500" in message or "server error" in message:
        return ErrorCategory.SERVER
    if "network" in message or "connection" in message or "dns" in message:
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


@dataclass
class UserFacingError:
    """带过期时间的用户可见错误状态"""

    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    expires_at: float = field(default=0.0)

    @classmethod
    def from_exception(cls, error: BaseException, ttl: float = 5.0) -> "UserFacingError":
        message = error.message if isinstance(error, ModResolveError) else str(error)
        return cls(
            message=message or "Unknown error",
            category=classify_error(error),
            expires_at=time.time() + ttl,
        )

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


__all__ = [
    # 基础异常
    "ModResolveError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # API 异常
    "APIError",
    "APINotFoundError",
    "APIForbiddenError",
    "APITimeoutError",
    "APIRateLimitError",
    "APIServerError",
    # 本地文件与分析
    "ModFileError",
    "AnalysisError",
    # 验证异常
    "ValidationError",
    # 分类
    "ErrorCategory",
    "classify_error",
    "UserFacingError",
]
