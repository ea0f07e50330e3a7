"""
依赖处理服务

递归解析模组依赖：从注册中心版本信息（兼容多种历史响应结构）或 JAR 扫描中
发现依赖，过滤自引用、Minecraft、系统依赖和 Fabric API 内置子模块，
再对照本地安装状态分类为缺失、已禁用、版本不匹配。

解析是贪心的尽力而为策略，不是完整的依赖求解器。
"""

import asyncio
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from loguru import logger

from modresolve.exceptions import APINotFoundError, ModResolveError
from modresolve.models import (
    GENERIC_DEPENDENCY_NAME,
    Dependency,
    DependencyStatus,
    InstalledModInfo,
    ModRef,
    ResolvedDependency,
    VersionInfo,
)
from modresolve.services.mod_analyzer import ModAnalyzer
from modresolve.services.version_matcher import VersionMatcher, check_requirement

FABRIC_API_SLUG = "fabric-api"
FABRIC_API_ID = "P7bfFtgC"

_SYSTEM_DEPENDENCIES = {"java", "javafml", "forge", "fabricloader", "quiltloader", "neoforge"}
_BUNDLED_FABRIC_MODULE = re.compile(r"^fabric-.*-v\d+$")
_OPTIONAL_TYPES = {"optional", "recommends", "suggests"}
_PASSTHROUGH_TYPES = {"required", "optional", "incompatible", "embedded"}

RawDependency = Union[str, Dict[str, Any]]
ShapeAdapter = Callable[[Dict[str, Any]], Optional[List[Dict[str, Any]]]]


def is_minecraft_project_id(project_id: Optional[str]) -> bool:
    """minecraft、net.minecraft、com.mojang:minecraft 都视为 Minecraft 本体"""
    if not project_id:
        return False
    canonical = re.sub(r"[^a-z]", "", str(project_id).lower())
    return canonical in ("minecraft", "netminecraft", "commojangminecraft")


def is_system_dependency(project_id: Optional[str]) -> bool:
    if not project_id:
        return False
    return re.sub(r"[^a-z]", "", str(project_id).lower()) in _SYSTEM_DEPENDENCIES


def is_bundled_fabric_module(project_id: Optional[str]) -> bool:
    """Fabric API 内置子模块（fabric-*-v<N>）不是独立项目，fabric-api 本身除外"""
    if not project_id:
        return False
    canonical = str(project_id).lower()
    if canonical == FABRIC_API_SLUG:
        return False
    return bool(_BUNDLED_FABRIC_MODULE.match(canonical))


def is_ignored_dependency(project_id: Optional[str]) -> bool:
    return (
        is_minecraft_project_id(project_id)
        or is_system_dependency(project_id)
        or is_bundled_fabric_module(project_id)
    )


def _as_required(entries: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(entries, list) or not entries:
        return None
    result = []
    for dep in entries:
        if isinstance(dep, str):
            result.append({"project_id": dep, "dependency_type": "required"})
        elif isinstance(dep, dict):
            result.append({**dep, "dependency_type": "required"})
    return result or None


def _standard_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    deps = info.get("dependencies")
    if not isinstance(deps, list) or not deps:
        return None
    return [{"project_id": d} if isinstance(d, str) else d for d in deps if isinstance(d, (str, dict))] or None


def _depends_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    return _as_required(info.get("depends"))


def _required_dependencies_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    return _as_required(info.get("required_dependencies"))


def _required_mods_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    return _as_required(info.get("required_mods"))


def _game_versions_requires_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    game_versions = info.get("game_versions")
    if not isinstance(game_versions, list):
        return None
    result = []
    for entry in game_versions:
        if isinstance(entry, dict):
            result.extend(_as_required(entry.get("requires")) or [])
    return result or None


def _relationships_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    relationships = info.get("relationships")
    if not isinstance(relationships, dict):
        return None
    result = []
    for key in ("dependencies", "required"):
        for dep in relationships.get(key) or []:
            if isinstance(dep, dict):
                result.append(
                    {
                        "project_id": dep.get("id") or dep.get("project_id") or dep.get("slug"),
                        "dependency_type": "required",
                    }
                )
    return result or None


def _metadata_shape(info: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    metadata = info.get("metadata")
    if not isinstance(metadata, dict) or not isinstance(metadata.get("dependencies"), list):
        return None
    result = []
    for dep in metadata["dependencies"]:
        if isinstance(dep, str):
            result.append({"project_id": dep, "dependency_type": "required"})
        elif isinstance(dep, dict):
            dep_type = "required" if dep.get("required") is True else (dep.get("type") or "optional")
            result.append({**dep, "dependency_type": dep_type})
    return result or None


# 按顺序尝试，第一个返回非空结果的结构生效
SHAPE_ADAPTERS: Sequence[ShapeAdapter] = (
    _standard_shape,
    _depends_shape,
    _required_dependencies_shape,
    _required_mods_shape,
    _game_versions_requires_shape,
    _relationships_shape,
    _metadata_shape,
)


def extract_declared_dependencies(info: Dict[str, Any]) -> List[Dict[str, Any]]:
    """从版本信息原始字典中提取依赖声明"""
    for adapter in SHAPE_ADAPTERS:
        found = adapter(info)
        if found:
            logger.debug(f"[依赖] 使用 {adapter.__name__} 提取到 {len(found)} 个依赖")
            return found
    return []


def _infer_type(dep: Dict[str, Any]) -> str:
    explicit = dep.get("dependency_type") or dep.get("dependencyType")
    if explicit:
        return str(explicit)
    if dep.get("required") is True:
        return "required"
    loose = str(dep.get("type") or "").lower()
    if loose in _OPTIONAL_TYPES:
        return "optional"
    if loose in _PASSTHROUGH_TYPES:
        return loose
    return "required"


def normalize_dependency(dep: RawDependency) -> Optional[Dependency]:
    """将任意结构的依赖声明标准化；无法确定项目 ID 时返回 None"""
    if isinstance(dep, str):
        return Dependency(project_id=dep) if dep else None
    if not isinstance(dep, dict):
        return None
    project_id = dep.get("project_id") or dep.get("projectId") or dep.get("id") or dep.get("slug")
    if not project_id:
        return None
    requirement = dep.get("version_requirement") or dep.get("versionRequirement")
    return Dependency(
        project_id=str(project_id),
        dependency_type=_infer_type(dep),
        version_requirement=requirement,
        name=dep.get("name"),
    )


def dedupe_dependencies(deps: Iterable[Dependency]) -> List[Dependency]:
    seen: Set[str] = set()
    result = []
    for dep in deps:
        if dep.project_id in seen:
            continue
        seen.add(dep.project_id)
        result.append(dep)
    return result


class DependencyResolver:
    """
    依赖解析器

    每次解析针对一份本地状态快照（已安装模组与禁用列表）。
    """

    def __init__(
        self,
        client,
        analyzer: Optional[ModAnalyzer] = None,
        installed: Optional[List[InstalledModInfo]] = None,
        disabled: Optional[Iterable[str]] = None,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
    ):
        self.client = client
        self.analyzer = analyzer
        self.installed = list(installed or [])
        self.disabled = set(disabled or [])
        self.loader = loader
        self.game_version = game_version
        self.version_matcher = VersionMatcher(client)

    def find_installed(self, project_id: str) -> Optional[InstalledModInfo]:
        return next((m for m in self.installed if m.project_id == project_id), None)

    async def resolve(
        self, mod: ModRef, visited: Optional[Set[str]] = None
    ) -> List[ResolvedDependency]:
        """
        递归解析模组依赖

        Args:
            mod: 要解析的模组
            visited: 已访问的项目 ID，用于防止循环依赖

        Returns:
            需要处理的依赖列表（缺失、已禁用、版本不匹配），按项目 ID 去重，
            不包含模组自身
        """
        if visited is None:
            visited = set()
        if not mod or not mod.id:
            return []
        if mod.id in visited:
            return []
        visited.add(mod.id)

        try:
            direct = await self._collect_dependencies(mod)
        except ModResolveError as e:
            logger.warning(f"[依赖] 收集 {mod.id} 的依赖失败: {e}")
            return []

        results: List[ResolvedDependency] = []
        for dep in direct:
            resolved = await self.classify(dep)
            if resolved and not any(r.project_id == resolved.project_id for r in results):
                results.append(resolved)

        for dep in direct:
            nested = await self.resolve(ModRef(id=dep.project_id, source=mod.source), visited)
            for item in nested:
                if item.project_id == mod.id:
                    continue
                if not any(r.project_id == item.project_id for r in results):
                    results.append(item)

        return results

    async def _collect_dependencies(self, mod: ModRef) -> List[Dependency]:
        """发现、标准化并过滤直接依赖（只保留 required）"""
        raw: List[RawDependency] = []
        is_fabric_mod = False

        version_info: Optional[VersionInfo] = None
        try:
            version_info = await self.client.get_version_info(
                mod.id, mod.selected_version_id, self.loader, self.game_version
            )
        except APINotFoundError:
            logger.debug(f"[依赖] 注册中心没有 {mod.id} 的版本信息")
        except ModResolveError as e:
            logger.warning(f"[依赖] 获取 {mod.id} 的版本信息失败: {e}")

        download_url = mod.download_url
        if version_info is not None:
            is_fabric_mod = "fabric" in version_info.loaders
            raw.extend(extract_declared_dependencies(version_info.raw))
            if version_info.primary_file and not download_url:
                download_url = version_info.primary_file.url

        if not raw and self.analyzer is not None:
            installed = self.find_installed(mod.id)
            if installed and installed.file_path:
                raw.extend(await self._scan_jar(self.analyzer.extract_dependencies(installed.file_path)))
                if "fabric" in installed.file_name.lower():
                    is_fabric_mod = True
            elif download_url:
                raw.extend(await self._scan_jar(self.analyzer.analyze_from_url(download_url, mod.id)))

        deps = [d for d in (normalize_dependency(r) for r in raw) if d is not None]

        if is_fabric_mod:
            await self._inject_fabric_api(mod, deps)

        deps = dedupe_dependencies(deps)
        return [
            d
            for d in deps
            if d.project_id != mod.id
            and not is_ignored_dependency(d.project_id)
            and d.dependency_type == "required"
        ]

    async def _scan_jar(self, scan) -> List[Dict[str, Any]]:
        """执行 JAR 扫描，并把模组 ID（通常是 slug）解析为注册中心项目 ID"""
        try:
            jar_deps = await scan
        except ModResolveError as e:
            logger.warning(f"[依赖] JAR 扫描失败: {e}")
            return []

        result = []
        for dep in jar_deps or []:
            dep_id = dep.get("id")
            if not dep_id or is_ignored_dependency(dep_id):
                continue
            project_id, name = dep_id, None
            try:
                project = await self.client.get_project(dep_id)
                if project:
                    project_id, name = project.id or dep_id, project.title or None
            except ModResolveError as e:
                logger.debug(f"[依赖] 无法解析 JAR 依赖 {dep_id}: {e}")
            result.append(
                {
                    "project_id": project_id,
                    "dependency_type": dep.get("dependency_type"),
                    "version_requirement": dep.get("version_requirement"),
                    "name": name,
                }
            )
        return result

    async def _inject_fabric_api(self, mod: ModRef, deps: List[Dependency]):
        """Fabric 模组经常依赖 Fabric API 却不声明，这里补上"""
        fabric_api_id, fabric_api_name = FABRIC_API_ID, "Fabric API"
        try:
            project = await self.client.get_project(FABRIC_API_SLUG)
            if project:
                fabric_api_id = project.id or fabric_api_id
                fabric_api_name = project.title or fabric_api_name
        except ModResolveError as e:
            logger.debug(f"[依赖] 获取 Fabric API 项目信息失败，使用内置 ID: {e}")

        if mod.id in (fabric_api_id, FABRIC_API_SLUG):
            return
        if any(d.project_id in (fabric_api_id, FABRIC_API_SLUG) for d in deps):
            return
        deps.append(
            Dependency(project_id=fabric_api_id, dependency_type="required", name=fabric_api_name)
        )

    async def _lookup(self, dep: Dependency):
        """并行获取项目名称和可用版本，失败时返回空结果"""

        async def project_title():
            try:
                project = await self.client.get_project(dep.project_id)
                return project.title if project else None
            except ModResolveError as e:
                logger.debug(f"[依赖] 获取 {dep.project_id} 项目信息失败: {e}")
                return None

        async def versions():
            try:
                return await self.client.get_versions(dep.project_id, self.loader, self.game_version)
            except ModResolveError as e:
                logger.debug(f"[依赖] 获取 {dep.project_id} 版本列表失败: {e}")
                return []

        return await asyncio.gather(project_title(), versions())

    async def classify(self, dep: Dependency) -> Optional[ResolvedDependency]:
        """
        对照本地状态分类依赖

        Returns:
            缺失、已禁用或版本不匹配时返回 ResolvedDependency，兼容时返回 None
        """
        installed = self.find_installed(dep.project_id)

        if installed is None:
            status = DependencyStatus.MISSING
        elif installed.file_name in self.disabled:
            status = DependencyStatus.DISABLED
        elif (
            dep.version_requirement
            and installed.version_number
            and not check_requirement(installed.version_number, dep.version_requirement)
        ):
            status = DependencyStatus.VERSION_MISMATCH
        else:
            return None

        title, versions = await self._lookup(dep)
        target, latest = self.version_matcher.pick_version(versions, dep.version_requirement)
        target_version = target.version_number if target else None
        latest_version = latest.version_number if latest else None

        if status == DependencyStatus.VERSION_MISMATCH:
            name = installed.name or title or dep.name
        else:
            name = dep.name or title or (installed.name if installed else None)
        name = name or GENERIC_DEPENDENCY_NAME

        if status == DependencyStatus.VERSION_MISMATCH:
            version_info = f"{installed.version_number} → {target_version or dep.version_requirement}"
        elif target_version and target_version != latest_version:
            version_info = f"v{target_version} (latest: v{latest_version})"
        elif target_version:
            version_info = f"v{target_version}"
        elif dep.version_requirement:
            version_info = f"Requirement: {dep.version_requirement}"
        else:
            version_info = ""

        logger.debug(f"[依赖] {name} ({dep.project_id}): {status.value}")
        return ResolvedDependency(
            project_id=dep.project_id,
            name=name,
            dependency_type=dep.dependency_type,
            status=status,
            version_requirement=dep.version_requirement,
            version_info=version_info,
            installed_version=installed.version_number if installed else None,
            target_version=target_version or dep.version_requirement,
            latest_version=latest_version,
        )
