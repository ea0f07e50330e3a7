"""
modresolve 服务层

包含业务逻辑服务：API 客户端、版本匹配、依赖解析、模糊匹配、兼容性检查。
"""

from modresolve.services.api_client import ModrinthClient
from modresolve.services.version_matcher import VersionMatcher
from modresolve.services.mod_analyzer import ModAnalyzer, JarModAnalyzer
from modresolve.services.mod_files import ModFileManager
from modresolve.services.dependency_resolver import DependencyResolver
from modresolve.services.mod_matcher import ModMatcher
from modresolve.services.match_store import MatchStatus, MatchStore
from modresolve.services.compatibility import CompatibilityChecker

__all__ = [
    "ModrinthClient",
    "VersionMatcher",
    "ModAnalyzer",
    "JarModAnalyzer",
    "ModFileManager",
    "DependencyResolver",
    "ModMatcher",
    "MatchStatus",
    "MatchStore",
    "CompatibilityChecker",
]
