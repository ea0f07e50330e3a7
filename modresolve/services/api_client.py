"""
API 客户端

Modrinth v2 API 客户端，负责项目、版本、搜索查询。
内置请求节流（最小请求间隔）、指数退避重试和版本列表缓存。
"""

import asyncio
import json
import time
from typing import Dict, List, Optional, Tuple

import aiohttp
from loguru import logger

from modresolve.exceptions import (
    APIError,
    APIForbiddenError,
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
    APITimeoutError,
)
from modresolve.models import APIConfig, ProjectInfo, SearchHit, VersionInfo

VersionCacheKey = Tuple[str, str, str]

# 网络层异常与可重试的状态码异常
_RETRYABLE = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    APIServerError,
    APIRateLimitError,
)


class ModrinthClient:
    """Modrinth API 客户端"""

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config or APIConfig()
        self._session = session
        self._owned_session = session is None
        self._last_request_time = 0.0
        self._version_cache: Dict[VersionCacheKey, List[VersionInfo]] = {}

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
            self._owned_session = True
        return self._session

    async def _throttle(self):
        """保证两次请求之间至少间隔 rate_limit 秒"""
        if self._last_request_time > 0:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.config.rate_limit:
                delay = self.config.rate_limit - elapsed
                logger.debug(f"[限流] 等待 {delay:.2f}s 后发送请求")
                await asyncio.sleep(delay)
        self._last_request_time = time.monotonic()

    async def _request(self, endpoint: str, params: Optional[dict] = None):
        """发送 API 请求，404 返回 None，可重试错误按指数退避重试"""
        url = f"{self.config.base_url}{endpoint}"

        for attempt in range(self.config.max_retries + 1):
            await self._throttle()
            try:
                async with self.session.get(url, params=params) as response:
                    if response.status == 200:
                        return await response.json()
                    if response.status == 404:
                        return None
                    self._raise_for_status(response)
            except _RETRYABLE as e:
                if attempt >= self.config.max_retries:
                    logger.error(f"[错误] 请求 {url} 最终失败: {e}")
                    if isinstance(e, APIError):
                        raise
                    if isinstance(e, asyncio.TimeoutError):
                        raise APITimeoutError(f"请求超时: {url}", context={"url": url})
                    raise APIError(f"网络请求失败: {e}", context={"url": url})

                delay = self.config.retry_delay * (2**attempt)
                logger.warning(
                    f"[重试] 请求 {url} 失败 (第 {attempt + 1} 次): {e}. "
                    f"{delay:.1f}s 后重试..."
                )
                await asyncio.sleep(delay)

        return None

    @staticmethod
    def _raise_for_status(response: aiohttp.ClientResponse):
        status = response.status
        if status == 403:
            raise APIForbiddenError(f"API 拒绝访问 (状态码: {status})", response=response)
        if status == 429:
            raise APIRateLimitError(f"API 速率限制 (状态码: {status})", response=response)
        if status >= 500:
            raise APIServerError(f"API 服务器错误 (状态码: {status})", response=response)
        raise APIError(f"API 请求失败 (状态码: {status})", response=response)

    async def get_project(self, idx: str) -> Optional[ProjectInfo]:
        """获取项目信息，idx 可以是项目 ID 或 slug"""
        response = await self._request(f"/project/{idx}")
        if response is None:
            return None
        return ProjectInfo.from_modrinth(response)

    async def get_versions(
        self,
        project_id: str,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
        latest_only: bool = False,
    ) -> List[VersionInfo]:
        """
        获取项目的版本列表（注册中心返回顺序，最新在前）

        Args:
            project_id: 项目 ID
            loader: 模组加载器过滤
            game_version: Minecraft 版本过滤
            latest_only: 只返回最新的稳定版本（没有稳定版时返回最新版本）
        """
        key = (project_id, loader or "", game_version or "")
        versions = self._version_cache.get(key)

        if versions is None:
            logger.debug(f"[缓存] 版本缓存未命中: {key}")
            params = {}
            if game_version:
                params["game_versions"] = json.dumps([game_version])
            if loader:
                params["loaders"] = json.dumps([loader])
            response = await self._request(f"/project/{project_id}/version", params or None)
            versions = [VersionInfo.from_modrinth(v) for v in response or []]
            self._version_cache[key] = versions

        if latest_only and versions:
            stable = next((v for v in versions if v.is_stable), None)
            return [stable or versions[0]]
        return list(versions)

    async def get_version_info(
        self,
        project_id: str,
        version_id: Optional[str] = None,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
    ) -> Optional[VersionInfo]:
        """获取指定版本信息；未指定 version_id 时返回最新兼容版本"""
        if version_id:
            response = await self._request(f"/version/{version_id}")
            if response is None:
                return None
            return VersionInfo.from_modrinth(response)

        latest = await self.get_versions(project_id, loader, game_version, latest_only=True)
        return latest[0] if latest else None

    async def search(
        self,
        query: str,
        loader: Optional[str] = None,
        version: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[SearchHit], int]:
        """
        搜索模组

        Returns:
            tuple: (搜索结果列表, 总命中数)
        """
        facets = [["project_type:mod"]]
        if loader:
            facets.append([f"categories:{loader}"])
        if version:
            facets.append([f"versions:{version}"])

        response = await self._request(
            "/search",
            {
                "query": query,
                "limit": str(limit),
                "offset": str(offset),
                "facets": json.dumps(facets),
                "index": "relevance",
            },
        )
        if not response:
            return [], 0
        hits = [SearchHit.from_modrinth(hit) for hit in response.get("hits", [])]
        return hits, response.get("total_hits", len(hits))

    async def _get_loader_meta(self, url: str) -> Optional[str]:
        try:
            async with self.session.get(url) as response:
                if response.status == 200:
                    versions = await response.json()
                    if versions:
                        return versions[0]["loader"]["version"]
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError) as e:
            logger.warning(f"获取加载器版本失败 ({url}): {e}")
        return None

    async def get_fabric_loader_version(self, mc_version: str) -> Optional[str]:
        """获取 Fabric 加载器版本"""
        return await self._get_loader_meta(
            f"https://meta.fabricmc.net/v2/versions/loader/{mc_version}"
        )

    async def get_quilt_loader_version(self, mc_version: str) -> Optional[str]:
        """获取 Quilt 加载器版本"""
        return await self._get_loader_meta(
            f"https://meta.quiltmc.org/v3/versions/loader/{mc_version}"
        )

    def clear_version_cache(self):
        """清除版本缓存"""
        size = len(self._version_cache)
        self._version_cache.clear()
        logger.debug(f"[缓存] 已清除 {size} 条版本缓存")

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
