"""
modresolve - Minecraft 模组解析核心

版本比较与范围匹配、依赖解析、文件名启发式、模糊匹配和兼容性检查。
"""

__version__ = "0.1.0"

from modresolve.exceptions import ModResolveError
from modresolve.models import ResolverConfig

__all__ = ["__version__", "ModResolveError", "ResolverConfig"]
