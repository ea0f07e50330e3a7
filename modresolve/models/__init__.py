"""
modresolve 数据模型包

包含配置模型、API 模型和本地模组模型定义。
"""

from modresolve.models.config import (
    ModLoader,
    MinecraftConfig,
    PathsConfig,
    APIConfig,
    ResolverConfig,
)
from modresolve.models.api import (
    ProjectInfo,
    FileInfo,
    DependencyInfo,
    VersionInfo,
    SearchHit,
)
from modresolve.models.mods import (
    GENERIC_DEPENDENCY_NAME,
    InstalledModInfo,
    ModRef,
    Dependency,
    DependencyStatus,
    ResolvedDependency,
    IssueType,
    DependencyIssue,
    CompatibilityResult,
    DisabledModUpdate,
    FilenameCompatibility,
    MatchCandidate,
    MatchSearchResult,
)

__all__ = [
    # 配置模型
    "ModLoader",
    "MinecraftConfig",
    "PathsConfig",
    "APIConfig",
    "ResolverConfig",
    # API 模型
    "ProjectInfo",
    "FileInfo",
    "DependencyInfo",
    "VersionInfo",
    "SearchHit",
    # 本地模组模型
    "GENERIC_DEPENDENCY_NAME",
    "InstalledModInfo",
    "ModRef",
    "Dependency",
    "DependencyStatus",
    "ResolvedDependency",
    "IssueType",
    "DependencyIssue",
    "CompatibilityResult",
    "DisabledModUpdate",
    "FilenameCompatibility",
    "MatchCandidate",
    "MatchSearchResult",
]
