"""
模组 JAR 分析服务

从 JAR 文件中读取 fabric.mod.json / quilt.mod.json / mods.toml，
提取模组元数据和依赖声明。注册中心没有依赖信息时由依赖解析器调用。
"""

import asyncio
import io
import json
import os
import re
import tempfile
import zipfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

import aiofiles
import aiohttp
import toml
from loguru import logger

from modresolve.exceptions import AnalysisError

JarSource = Union[str, bytes]

_MAVEN_RANGE = re.compile(r"^([\[(])\s*([^,]*)\s*,\s*([^,]*)\s*([\])])$")


def maven_range_to_expr(version_range: Optional[str]) -> Optional[str]:
    """
    将 Forge 使用的 Maven 版本范围转换为比较表达式

    "[1.20,1.21)" -> ">=1.20 <1.21"，"[1.20,)" -> ">=1.20"，"[1.2]" -> "1.2"
    """
    if not version_range:
        return None
    version_range = version_range.strip()
    if version_range in ("*", "[0,)", "(,)"):
        return None
    if version_range.startswith("[") and version_range.endswith("]") and "," not in version_range:
        return version_range[1:-1].strip()

    match = _MAVEN_RANGE.match(version_range)
    if not match:
        return version_range
    left, low, high, right = match.groups()
    parts = []
    if low:
        parts.append((">=" if left == "[" else ">") + low)
    if high:
        parts.append(("<=" if right == "]" else "<") + high)
    return " ".join(parts) or None


def _fabric_dependencies(metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
    deps = []
    for key, dep_type in (("depends", "required"), ("recommends", "optional"), ("suggests", "optional")):
        section = metadata.get(key) or {}
        if not isinstance(section, dict):
            continue
        for mod_id, requirement in section.items():
            deps.append(
                {
                    "id": mod_id,
                    "dependency_type": dep_type,
                    "version_requirement": requirement if requirement != "*" else None,
                }
            )
    return deps


def _quilt_dependencies(metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
    loader = metadata.get("quilt_loader") or {}
    deps = []
    for entry in loader.get("depends", []):
        if isinstance(entry, str):
            deps.append({"id": entry, "dependency_type": "required", "version_requirement": None})
        elif isinstance(entry, dict) and entry.get("id"):
            versions = entry.get("versions")
            deps.append(
                {
                    "id": entry["id"],
                    "dependency_type": "optional" if entry.get("optional") else "required",
                    "version_requirement": versions if versions != "*" else None,
                }
            )
    return deps


def _forge_dependencies(metadata: Dict[str, Any], mod_id: Optional[str]) -> List[Dict[str, Any]]:
    sections = metadata.get("dependencies") or {}
    entries = sections.get(mod_id, []) if mod_id else []
    if not entries:
        entries = [dep for group in sections.values() if isinstance(group, list) for dep in group]

    deps = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("modId"):
            continue
        dep_type = str(entry.get("type", "")).lower()
        if dep_type:
            required = dep_type == "required"
        else:
            required = bool(entry.get("mandatory", True))
        deps.append(
            {
                "id": entry["modId"],
                "dependency_type": "required" if required else "optional",
                "version_requirement": maven_range_to_expr(entry.get("versionRange")),
            }
        )
    return deps


class ModAnalyzer(ABC):
    """模组元数据分析接口"""

    @abstractmethod
    async def read_metadata(self, jar: JarSource) -> Optional[Dict[str, Any]]:
        """读取模组元数据，无法识别时返回 None"""

    @abstractmethod
    async def extract_dependencies(self, jar_path: str) -> List[Dict[str, Any]]:
        """
        提取本地 JAR 的依赖声明

        Returns:
            [{"id", "dependency_type", "version_requirement"}, ...]
        """

    @abstractmethod
    async def analyze_from_url(self, url: str, mod_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """下载远程 JAR 并提取依赖声明"""


class JarModAnalyzer(ModAnalyzer):
    """基于 zipfile 的 JAR 分析器"""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _read(self, jar: JarSource) -> Optional[Dict[str, Any]]:
        source = io.BytesIO(jar) if isinstance(jar, bytes) else jar
        try:
            with zipfile.ZipFile(source) as z:
                names = z.namelist()

                if "fabric.mod.json" in names:
                    metadata = json.loads(z.read("fabric.mod.json").decode("utf-8"))
                    metadata["loader_type"] = "fabric"
                    metadata["dependencies"] = _fabric_dependencies(metadata)
                elif "quilt.mod.json" in names:
                    raw = json.loads(z.read("quilt.mod.json").decode("utf-8"))
                    loader = raw.get("quilt_loader") or {}
                    meta = loader.get("metadata") or {}
                    metadata = {
                        "id": loader.get("id"),
                        "version": loader.get("version"),
                        "name": meta.get("name"),
                        "authors": list((meta.get("contributors") or {}).keys()),
                        "loader_type": "quilt",
                        "dependencies": _quilt_dependencies(raw),
                    }
                else:
                    toml_name = next(
                        (n for n in ("META-INF/neoforge.mods.toml", "META-INF/mods.toml") if n in names),
                        None,
                    )
                    if toml_name is None:
                        return None
                    raw = toml.loads(z.read(toml_name).decode("utf-8"))
                    mods = raw.get("mods") or [{}]
                    first = mods[0]
                    authors = first.get("authors") or raw.get("authors") or ""
                    metadata = {
                        "id": first.get("modId"),
                        "version": first.get("version"),
                        "name": first.get("displayName") or first.get("modId"),
                        "authors": [a.strip() for a in str(authors).split(",") if a.strip()],
                        "loader_type": "neoforge" if "neoforge" in toml_name else "forge",
                        "dependencies": _forge_dependencies(raw, first.get("modId")),
                    }
        except (zipfile.BadZipFile, OSError, UnicodeDecodeError, json.JSONDecodeError, toml.TomlDecodeError) as e:
            raise AnalysisError(f"无法解析 JAR 元数据: {e}", context={"source": str(jar)[:200]})

        authors = metadata.get("authors") or []
        metadata["authors"] = [a.get("name", "") if isinstance(a, dict) else str(a) for a in authors]
        metadata["name"] = metadata.get("name") or metadata.get("id")
        return metadata

    async def read_metadata(self, jar: JarSource) -> Optional[Dict[str, Any]]:
        try:
            return self._read(jar)
        except AnalysisError as e:
            logger.warning(str(e))
            return None

    async def extract_dependencies(self, jar_path: str) -> List[Dict[str, Any]]:
        if not os.path.exists(jar_path):
            logger.debug(f"JAR 文件不存在: {jar_path}")
            return []
        metadata = await self.read_metadata(jar_path)
        return metadata.get("dependencies", []) if metadata else []

    async def analyze_from_url(self, url: str, mod_id: Optional[str] = None) -> List[Dict[str, Any]]:
        logger.info(f"[分析] 下载并分析远程 JAR: {mod_id or url}")
        fd, temp_path = tempfile.mkstemp(suffix=".jar", prefix="modresolve-")
        os.close(fd)
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    logger.warning(f"[分析] 下载失败 (HTTP {response.status}): {url}")
                    return []
                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(8192):
                        await f.write(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AnalysisError(f"下载 JAR 失败: {e}", context={"url": url})
        else:
            return await self.extract_dependencies(temp_path)
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

    async def close(self):
        """关闭分析器"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()
