"""
本地模组与解析结果数据模型
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


GENERIC_DEPENDENCY_NAME = "Required Dependency"


@dataclass
class InstalledModInfo:
    """
    已安装模组信息

    每次加载时从磁盘扫描和 manifest 重新计算，不持久化。
    """

    file_name: str
    project_id: Optional[str] = None
    version_id: Optional[str] = None
    version_number: Optional[str] = None
    name: Optional[str] = None
    source: str = "modrinth"
    installed_at: Optional[str] = None
    minecraft_version: Any = None
    location: str = "server"
    file_path: Optional[str] = None

    @classmethod
    def from_manifest(cls, data: Dict[str, Any], **overrides) -> "InstalledModInfo":
        """从安装时写入的 manifest 构建"""
        version_number = data.get("versionNumber") or data.get("version")
        if str(version_number or "").strip().lower() == "unknown":
            version_number = None
        info = cls(
            file_name=data.get("fileName", ""),
            project_id=data.get("projectId"),
            version_id=data.get("versionId"),
            version_number=version_number,
            name=data.get("name") or data.get("title"),
            source=data.get("source") or "modrinth",
            installed_at=data.get("installedAt"),
            minecraft_version=data.get("minecraftVersion"),
        )
        for key, value in overrides.items():
            setattr(info, key, value)
        return info


@dataclass
class ModRef:
    """待解析依赖的模组引用"""

    id: str
    selected_version_id: Optional[str] = None
    source: str = "modrinth"
    download_url: Optional[str] = None


@dataclass
class Dependency:
    """标准化后的依赖声明"""

    project_id: str
    dependency_type: str = "required"
    version_requirement: Optional[str] = None
    name: Optional[str] = None


class DependencyStatus(Enum):
    """依赖在本地的状态"""

    MISSING = "missing"
    DISABLED = "disabled"
    VERSION_MISMATCH = "version_mismatch"
    COMPATIBLE = "compatible"


@dataclass
class ResolvedDependency:
    """解析后的依赖条目"""

    project_id: str
    name: str
    dependency_type: str
    status: DependencyStatus
    version_requirement: Optional[str] = None
    version_info: str = ""
    installed_version: Optional[str] = None
    target_version: Optional[str] = None
    latest_version: Optional[str] = None


class IssueType(Enum):
    """依赖兼容性问题类型"""

    MISSING = "missing"
    DISABLED = "disabled"
    VERSION_MISMATCH = "version_mismatch"
    UPDATE_AVAILABLE = "update_available"


@dataclass
class DependencyIssue:
    """依赖兼容性问题"""

    type: IssueType
    dependency: Dependency
    message: str
    required_version: Optional[str] = None
    installed_version: Optional[str] = None
    target_version: Optional[str] = None
    latest_version: Optional[str] = None
    version_info: str = ""


@dataclass
class CompatibilityResult:
    """单个模组针对目标 Minecraft 版本的兼容性判断"""

    file_name: str
    name: str
    compatible: bool
    project_id: Optional[str] = None
    current_version: Optional[str] = None
    latest_version: Optional[str] = None
    has_update: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None
    dependencies: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DisabledModUpdate:
    """已禁用模组的更新检查结果"""

    file_name: str
    name: str
    has_update: bool
    reason: str
    project_id: Optional[str] = None
    current_version: Optional[str] = None
    latest_version: Optional[str] = None
    latest_version_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FilenameCompatibility:
    """基于文件名推断的兼容性"""

    is_compatible: bool
    confidence: str  # low, medium


@dataclass
class MatchCandidate:
    """模糊匹配候选项"""

    project_id: str
    slug: str
    title: str
    score: float
    reasons: List[str] = field(default_factory=list)
    description: str = ""
    downloads: int = 0
    author: Optional[str] = None
    available_versions: List[str] = field(default_factory=list)
    has_matching_version: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "slug": self.slug,
            "title": self.title,
            "match_score": round(self.score, 3),
            "match_reasons": list(self.reasons),
            "downloads": self.downloads,
            "author": self.author,
            "has_matching_version": self.has_matching_version,
        }


@dataclass
class MatchSearchResult:
    """一次模糊匹配搜索的结果"""

    matches: List[MatchCandidate]
    searched_name: str
    searched_version: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    total_hits: int = 0
