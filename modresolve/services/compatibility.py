"""
兼容性检查服务

- 检查已启用模组是否兼容目标 Minecraft 版本
- 检查已禁用模组是否有兼容新版本的更新
- 将依赖解析结果转换为可展示的依赖问题
"""

from dataclasses import asdict
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger

from modresolve.exceptions import ModResolveError, ValidationError
from modresolve.models import (
    CompatibilityResult,
    Dependency,
    DependencyIssue,
    DependencyStatus,
    DisabledModUpdate,
    InstalledModInfo,
    IssueType,
    ResolvedDependency,
)
from modresolve.services.dependency_resolver import DependencyResolver, normalize_dependency
from modresolve.services.filename_heuristics import extract_version
from modresolve.services.mod_files import ModFileManager
from modresolve.services.version_matcher import check_requirement, satisfies

_STATUS_TO_ISSUE = {
    DependencyStatus.MISSING: IssueType.MISSING,
    DependencyStatus.DISABLED: IssueType.DISABLED,
    DependencyStatus.VERSION_MISMATCH: IssueType.VERSION_MISMATCH,
}


def _current_version(mod: InstalledModInfo) -> Optional[str]:
    return mod.version_number or extract_version(mod.file_name)


def _issue_message(resolved: ResolvedDependency) -> str:
    if resolved.status == DependencyStatus.MISSING:
        return "Required dependency not installed"
    if resolved.status == DependencyStatus.DISABLED:
        return "Required dependency is installed but disabled"
    return f"Version {resolved.installed_version} needs to be updated to {resolved.target_version}"


class CompatibilityChecker:
    """兼容性检查器"""

    def __init__(self, client, loader: str = "fabric"):
        self.client = client
        self.loader = loader

    @staticmethod
    async def _load_mods(files: ModFileManager):
        installed = await files.get_installed_mod_info()
        disabled = set(await files.get_disabled_mods())
        return installed, disabled

    async def check_mod_compatibility(
        self, server_path: str, mc_version: str, loader_version: str
    ) -> List[CompatibilityResult]:
        """
        检查已启用模组与目标 Minecraft 版本的兼容性

        单个模组查询失败只会记录在该模组的结果中，不会中断整个报告。

        Raises:
            ValidationError: 服务器路径或版本信息缺失
        """
        files = ModFileManager(server_path)
        if not mc_version or not loader_version:
            raise ValidationError("缺少版本信息", context={"mc_version": mc_version})
        installed, disabled = await self._load_mods(files)

        self.client.clear_version_cache()
        results = []
        for mod in installed:
            if mod.file_name in disabled:
                continue
            results.append(await self._check_one(mod, mc_version))

        incompatible = sum(1 for r in results if not r.compatible)
        logger.info(f"[兼容性] 检查了 {len(results)} 个模组，{incompatible} 个不兼容 MC {mc_version}")
        return results

    async def _check_one(self, mod: InstalledModInfo, mc_version: str) -> CompatibilityResult:
        name = mod.name or mod.file_name
        current_version = _current_version(mod)
        result = CompatibilityResult(
            file_name=mod.file_name,
            name=name,
            compatible=True,
            project_id=mod.project_id,
            current_version=current_version,
        )
        if not mod.project_id:
            result.reason = "No project ID available"
            return result

        try:
            if mod.minecraft_version:
                current_compatible = satisfies(mod.minecraft_version, mc_version)
            else:
                versions = await self.client.get_versions(mod.project_id, self.loader, mc_version)
                current_compatible = any(
                    v.version_number == current_version and mc_version in v.game_versions
                    for v in versions
                )

            latest_versions = await self.client.get_versions(
                mod.project_id, self.loader, mc_version, latest_only=True
            )
            latest = latest_versions[0] if latest_versions else None
        except ModResolveError as e:
            logger.warning(f"[兼容性] 检查 {name} 失败: {e}")
            result.compatible = False
            result.error = e.message
            return result

        result.latest_version = latest.version_number if latest else current_version
        if current_compatible:
            result.dependencies = [asdict(d) for d in latest.dependencies] if latest else []
        elif latest and mc_version in latest.game_versions:
            result.has_update = True
            result.dependencies = [asdict(d) for d in latest.dependencies]
            result.reason = f"Update required: {current_version} → {latest.version_number}"
        else:
            result.compatible = False
            result.reason = f"No version compatible with MC {mc_version}"
        return result

    async def check_disabled_mod_updates(
        self, server_path: str, mc_version: str
    ) -> List[DisabledModUpdate]:
        """检查已禁用模组是否有兼容目标 Minecraft 版本的更新"""
        files = ModFileManager(server_path)
        if not mc_version:
            raise ValidationError("缺少版本信息")
        installed, disabled = await self._load_mods(files)

        results = []
        for mod in installed:
            if mod.file_name not in disabled:
                continue
            name = mod.name or mod.file_name
            current_version = _current_version(mod)
            update = DisabledModUpdate(
                file_name=mod.file_name,
                name=name,
                has_update=False,
                reason="",
                project_id=mod.project_id,
                current_version=current_version,
            )
            results.append(update)

            if not mod.project_id:
                update.reason = "No project ID available"
                continue
            if mod.minecraft_version and satisfies(mod.minecraft_version, mc_version):
                update.reason = f"Current version is compatible with MC {mc_version}"
                continue

            try:
                latest_versions = await self.client.get_versions(
                    mod.project_id, self.loader, mc_version, latest_only=True
                )
            except ModResolveError as e:
                logger.warning(f"[更新] 检查已禁用模组 {name} 失败: {e}")
                update.reason = f"Error: {e.message}"
                update.error = e.message
                continue

            latest = latest_versions[0] if latest_versions else None
            if latest and latest.version_number != current_version:
                update.has_update = True
                update.latest_version = latest.version_number
                update.latest_version_id = latest.id
                update.reason = (
                    f"Update available: {current_version} → {latest.version_number} "
                    f"(compatible with MC {mc_version})"
                )
            else:
                update.reason = "Current version is latest" if latest else "No compatible versions found"

        logger.info(f"[更新] {sum(1 for r in results if r.has_update)} 个已禁用模组有可用更新")
        return results

    async def check_dependency_issues(
        self,
        dependencies: Iterable[Union[Dependency, dict, str]],
        main_mod_id: Optional[str] = None,
        installed: Optional[List[InstalledModInfo]] = None,
        disabled: Optional[Iterable[str]] = None,
        updates: Optional[Dict[str, str]] = None,
        game_version: Optional[str] = None,
    ) -> List[DependencyIssue]:
        """
        检查依赖列表的兼容性问题

        Args:
            dependencies: 依赖声明（Dependency 或原始字典）
            main_mod_id: 主模组 ID，自引用会被忽略
            installed: 已安装模组
            disabled: 已禁用的模组文件名
            updates: 项目 ID 到可用更新版本号的映射，用于生成 update_available 建议
            game_version: 目标 Minecraft 版本
        """
        resolver = DependencyResolver(
            self.client,
            installed=installed,
            disabled=disabled,
            loader=self.loader,
            game_version=game_version,
        )
        updates = updates or {}

        seen = {main_mod_id} if main_mod_id else set()
        unique: List[Dependency] = []
        for raw in dependencies or []:
            dep = raw if isinstance(raw, Dependency) else normalize_dependency(raw)
            if dep is None or dep.project_id in seen:
                continue
            seen.add(dep.project_id)
            unique.append(dep)

        issues = []
        for dep in unique:
            if dep.dependency_type != "required":
                continue
            resolved = await resolver.classify(dep)
            if resolved is not None:
                issues.append(
                    DependencyIssue(
                        type=_STATUS_TO_ISSUE[resolved.status],
                        dependency=Dependency(
                            project_id=resolved.project_id,
                            dependency_type=dep.dependency_type,
                            version_requirement=dep.version_requirement,
                            name=resolved.name,
                        ),
                        message=_issue_message(resolved),
                        required_version=resolved.target_version,
                        installed_version=resolved.installed_version,
                        target_version=resolved.target_version,
                        latest_version=resolved.latest_version,
                        version_info=resolved.version_info,
                    )
                )
                continue

            mod = resolver.find_installed(dep.project_id)
            update_version = updates.get(dep.project_id)
            if mod is None or not update_version:
                continue
            if check_requirement(update_version, dep.version_requirement):
                issues.append(
                    DependencyIssue(
                        type=IssueType.UPDATE_AVAILABLE,
                        dependency=Dependency(
                            project_id=dep.project_id,
                            dependency_type="optional",
                            version_requirement=dep.version_requirement,
                            name=mod.name or dep.name,
                        ),
                        message=f"Update available: {mod.version_number} → {update_version}",
                        installed_version=mod.version_number,
                        target_version=update_version,
                        latest_version=update_version,
                        version_info=f"{mod.version_number} → {update_version}",
                    )
                )

        logger.debug(f"[依赖] 检查 {len(unique)} 个依赖，发现 {len(issues)} 个问题")
        return issues
