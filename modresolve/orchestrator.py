"""
会话协调器

整合服务层组件。每个会话拥有自己的 API 客户端（含限流时间戳和版本缓存）、
检查忙碌标记和请求序号，不使用模块级全局状态。
"""

import os
from typing import Dict, List, Optional

from loguru import logger

from modresolve.exceptions import ModResolveError, UserFacingError, ValidationError
from modresolve.models import (
    CompatibilityResult,
    DisabledModUpdate,
    InstalledModInfo,
    MatchSearchResult,
    ModRef,
    ResolvedDependency,
    ResolverConfig,
)
from modresolve.services import (
    CompatibilityChecker,
    DependencyResolver,
    JarModAnalyzer,
    MatchStatus,
    MatchStore,
    ModFileManager,
    ModMatcher,
    ModrinthClient,
    VersionMatcher,
)


class ModSession:
    """modresolve 会话"""

    def __init__(self, config: ResolverConfig, client=None, analyzer=None):
        self.config = config
        self.loader = config.minecraft.loader.value
        self.client = client or ModrinthClient(config.api)
        self.analyzer = analyzer or JarModAnalyzer()
        self.version_matcher = VersionMatcher(self.client)
        self.compatibility = CompatibilityChecker(self.client, self.loader)
        self.matcher = ModMatcher(self.client, self.analyzer, self.loader)
        self.match_store = MatchStore(config.paths.matches_file)

        self._busy: Dict[str, bool] = {}
        self._rerun_requested: Dict[str, bool] = {}
        self._request_ids: Dict[str, int] = {}
        self._match_store_loaded = False

        self.compatibility_report: List[CompatibilityResult] = []
        self.disabled_updates: List[DisabledModUpdate] = []
        self.dependencies: List[ResolvedDependency] = []
        self.last_error: Optional[UserFacingError] = None

    def _server_path(self, server_path: Optional[str]) -> str:
        path = server_path or self.config.paths.server
        if not path:
            raise ValidationError("缺少服务器路径，请在 [paths] 中配置 server 或通过参数传入")
        return path

    def _next_request_id(self, name: str) -> int:
        self._request_ids[name] = self._request_ids.get(name, 0) + 1
        return self._request_ids[name]

    def is_current(self, name: str, request_id: int) -> bool:
        """请求序号是否仍是该类请求中最新的"""
        return self._request_ids.get(name, 0) == request_id

    def is_busy(self, name: str) -> bool:
        return self._busy.get(name, False)

    def _record_error(self, error: ModResolveError):
        self.last_error = UserFacingError.from_exception(error)

    def current_error(self) -> Optional[UserFacingError]:
        """返回未过期的错误状态"""
        if self.last_error and self.last_error.is_expired():
            self.last_error = None
        return self.last_error

    async def _guarded(self, name: str, run, rerun_if_busy: bool):
        """
        同一类检查同时只运行一个

        正在运行时重复调用直接返回空列表；rerun_if_busy 为 True 时
        记录一次"完成后再运行"请求，由正在运行的调用在结束前补跑。
        """
        if self._busy.get(name):
            if rerun_if_busy:
                self._rerun_requested[name] = True
            logger.debug(f"[会话] {name} 正在进行，忽略重复请求")
            return []

        self._busy[name] = True
        try:
            while True:
                self._rerun_requested[name] = False
                result = await run()
                if not self._rerun_requested.get(name):
                    return result
                logger.debug(f"[会话] {name} 有延迟请求，重新运行")
        except ModResolveError as e:
            self._record_error(e)
            raise
        finally:
            self._busy[name] = False
            self._rerun_requested[name] = False

    async def get_loader_version(self) -> Optional[str]:
        """配置中没有加载器版本时从加载器元数据服务获取"""
        if self.config.minecraft.loader_version:
            return self.config.minecraft.loader_version
        version = await self.version_matcher.get_loader_version(
            self.config.minecraft.loader, self.config.minecraft.version
        )
        if version:
            logger.info(f"使用 {self.loader} 加载器版本 {version}")
        return version

    async def check_compatibility(
        self, server_path: Optional[str] = None, rerun_if_busy: bool = False
    ) -> List[CompatibilityResult]:
        """检查已启用模组与配置的 Minecraft 版本的兼容性"""
        path = self._server_path(server_path)

        async def run():
            loader_version = await self.get_loader_version()
            results = await self.compatibility.check_mod_compatibility(
                path, self.config.minecraft.version, loader_version
            )
            self.compatibility_report = results
            return results

        return await self._guarded("compatibility", run, rerun_if_busy)

    async def check_disabled_updates(
        self, server_path: Optional[str] = None, rerun_if_busy: bool = False
    ) -> List[DisabledModUpdate]:
        """检查已禁用模组的可用更新"""
        path = self._server_path(server_path)

        async def run():
            results = await self.compatibility.check_disabled_mod_updates(
                path, self.config.minecraft.version
            )
            self.disabled_updates = results
            return results

        return await self._guarded("disabled_updates", run, rerun_if_busy)

    async def _local_state(self, server_path: Optional[str]):
        path = server_path or self.config.paths.server
        if not path or not os.path.isdir(path):
            return [], []
        files = ModFileManager(path)
        return await files.get_installed_mod_info(), await files.get_disabled_mods()

    async def resolve_dependencies(
        self,
        project_id: str,
        version_id: Optional[str] = None,
        server_path: Optional[str] = None,
        installed: Optional[List[InstalledModInfo]] = None,
    ) -> List[ResolvedDependency]:
        """
        解析模组依赖

        较新的请求完成后，较旧请求的结果不会再覆盖会话中的依赖列表，
        但仍会返回给调用方。
        """
        request_id = self._next_request_id("dependencies")
        if installed is None:
            installed, disabled = await self._local_state(server_path)
        else:
            disabled = []

        resolver = DependencyResolver(
            self.client,
            self.analyzer,
            installed=installed,
            disabled=disabled,
            loader=self.loader,
            game_version=self.config.minecraft.version,
        )
        try:
            result = await resolver.resolve(ModRef(id=project_id, selected_version_id=version_id))
        except ModResolveError as e:
            self._record_error(e)
            raise

        if self.is_current("dependencies", request_id):
            self.dependencies = result
        else:
            logger.debug(f"[会话] 依赖解析请求 #{request_id} 已过期，不更新会话状态")
        return result

    async def _ensure_match_store(self):
        if not self._match_store_loaded:
            await self.match_store.load()
            self._match_store_loaded = True

    async def match_file(self, mod_path: str) -> MatchSearchResult:
        """为没有 manifest 的模组文件搜索候选项目并记录为待确认"""
        await self._ensure_match_store()
        file_name = os.path.basename(mod_path)
        result = await self.matcher.search_matches(mod_path=mod_path, loader=self.loader)

        summary = {
            "matches": [m.to_dict() for m in result.matches],
            "searched_name": result.searched_name,
            "searched_version": result.searched_version,
        }
        self.match_store.set_search_result(file_name, summary)
        if result.matches and self.match_store.get_status(file_name) != MatchStatus.CONFIRMED:
            self.match_store.set_pending(file_name, summary)
        return result

    async def confirm_match(self, file_name: str, project_id: str, data: Optional[dict] = None):
        await self._ensure_match_store()
        await self.match_store.confirm(file_name, project_id, data)

    async def reject_match(self, file_name: str, reason: str = "User rejected"):
        await self._ensure_match_store()
        self.match_store.reject(file_name, reason)

    async def close(self):
        """关闭会话"""
        await self.client.close()
        await self.analyzer.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
