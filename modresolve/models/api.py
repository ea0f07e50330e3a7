"""
API 数据模型

定义注册中心返回的数据类，包括项目信息、版本信息、搜索结果等。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProjectInfo:
    """
    模组项目信息。
    """

    id: str
    slug: str
    title: str
    description: str = ""
    project_type: str = "mod"
    versions: List[str] = field(default_factory=list)
    downloads: int = 0
    author: Optional[str] = None

    @classmethod
    def from_modrinth(cls, data: dict) -> "ProjectInfo":
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            project_type=data.get("project_type", "mod"),
            versions=data.get("versions", []),
            downloads=data.get("downloads", 0),
            author=data.get("author"),
        )


@dataclass
class FileInfo:
    """文件信息"""

    url: str
    filename: str
    size: int = 0
    primary: bool = False
    hashes: Optional[Dict[str, str]] = None


@dataclass
class DependencyInfo:
    """依赖信息"""

    project_id: Optional[str]
    dependency_type: str  # required, optional, incompatible, embedded
    version_id: Optional[str] = None
    file_name: Optional[str] = None


@dataclass
class VersionInfo:
    """
    模组版本信息。

    raw 保留注册中心返回的原始字典，依赖解析时需要从中读取非标准字段。
    """

    id: str
    name: str
    version_number: str
    loaders: List[str]
    game_versions: List[Any]
    files: List[FileInfo]
    dependencies: List[DependencyInfo]
    date_published: Optional[str] = None
    version_type: str = "release"
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_stable(self) -> bool:
        return self.version_type == "release"

    @property
    def primary_file(self) -> Optional[FileInfo]:
        """获取主文件信息"""
        if not self.files:
            return None
        for file in self.files:
            if file.primary:
                return file
        return self.files[0]

    @classmethod
    def from_modrinth(cls, data: dict) -> "VersionInfo":
        """
        将 Modrinth API 返回的版本信息转换为 VersionInfo 对象。
        """
        files = [
            FileInfo(
                url=file.get("url", ""),
                filename=file.get("filename", ""),
                size=file.get("size", 0),
                primary=file.get("primary", False),
                hashes=file.get("hashes"),
            )
            for file in data.get("files", [])
        ]

        dependencies = [
            DependencyInfo(
                project_id=dep.get("project_id"),
                dependency_type=dep.get("dependency_type", "required"),
                version_id=dep.get("version_id"),
                file_name=dep.get("file_name"),
            )
            for dep in data.get("dependencies", [])
            if isinstance(dep, dict)
        ]

        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            version_number=data.get("version_number", ""),
            files=files,
            loaders=list(data.get("loaders", [])),
            game_versions=list(data.get("game_versions", [])),
            dependencies=dependencies,
            date_published=data.get("date_published"),
            version_type=data.get("version_type", "release"),
            raw=data,
        )


@dataclass
class SearchHit:
    """搜索结果条目"""

    project_id: str
    slug: str
    title: str
    description: str = ""
    downloads: int = 0
    author: Optional[str] = None
    versions: List[str] = field(default_factory=list)

    @classmethod
    def from_modrinth(cls, data: dict) -> "SearchHit":
        return cls(
            project_id=data.get("project_id", data.get("id", "")),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            downloads=data.get("downloads", 0),
            author=data.get("author"),
            versions=data.get("versions", []),
        )
