"""
本地模组文件服务

扫描服务器目录中的模组文件，读取安装 manifest，维护禁用模组列表。
只负责读取和记录状态，不移动或删除模组文件。

目录结构:
    <server>/mods/                         已启用的服务端模组
    <server>/mods_disabled/                已禁用的模组
    <server>/client/mods/                  客户端模组
    <server>/minecraft-core-manifests/     服务端 manifest（<文件名>.json）
    <server>/client/minecraft-core-manifests/
    <server>/.modresolve/disabled-mods.json
"""

import json
import os
from typing import Dict, List, Optional

import aiofiles
from loguru import logger

from modresolve.exceptions import ModFileError, ValidationError
from modresolve.models import InstalledModInfo
from modresolve.services.filename_heuristics import strip_jar_suffix

MANIFEST_DIR = "minecraft-core-manifests"
DISABLED_SUFFIX = ".disabled"


def _list_jars(directory: str) -> List[str]:
    if not os.path.isdir(directory):
        return []
    return sorted(
        name
        for name in os.listdir(directory)
        if name.endswith(".jar") or name.endswith(".jar" + DISABLED_SUFFIX)
    )


async def _read_json(path: str):
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return json.loads(await f.read())


class ModFileManager:
    """服务器模组目录管理"""

    def __init__(self, server_path: str):
        if not server_path:
            raise ValidationError("缺少服务器路径")
        if not os.path.isdir(server_path):
            raise ValidationError(f"无效的服务器路径: {server_path}", context={"path": server_path})
        self.server_path = server_path
        self.mods_dir = os.path.join(server_path, "mods")
        self.disabled_dir = os.path.join(server_path, "mods_disabled")
        self.client_mods_dir = os.path.join(server_path, "client", "mods")
        self.manifest_dirs = (
            os.path.join(server_path, "client", MANIFEST_DIR),
            os.path.join(server_path, MANIFEST_DIR),
        )
        self.disabled_list_path = os.path.join(server_path, ".modresolve", "disabled-mods.json")

    def list_mods(self) -> List[Dict[str, object]]:
        """列出所有模组文件及其所在位置"""
        locations: Dict[str, List[str]] = {}
        for location, directory in (
            ("server", self.mods_dir),
            ("client", self.client_mods_dir),
            ("disabled", self.disabled_dir),
        ):
            for name in _list_jars(directory):
                file_name = name[: -len(DISABLED_SUFFIX)] if name.endswith(DISABLED_SUFFIX) else name
                entry = locations.setdefault(file_name, [])
                if location not in entry:
                    entry.append(location)
        return [{"file_name": name, "locations": locs} for name, locs in sorted(locations.items())]

    def _file_path(self, file_name: str, locations: List[str]) -> Optional[str]:
        for location, directory in (
            ("server", self.mods_dir),
            ("client", self.client_mods_dir),
            ("disabled", self.disabled_dir),
        ):
            if location not in locations:
                continue
            for candidate in (file_name, file_name + DISABLED_SUFFIX):
                path = os.path.join(directory, candidate)
                if os.path.exists(path):
                    return path
        return None

    async def _read_manifest(self, file_name: str) -> Optional[dict]:
        for directory in self.manifest_dirs:
            path = os.path.join(directory, f"{file_name}.json")
            if not os.path.exists(path):
                continue
            try:
                return await _read_json(path)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"读取 manifest 失败 {path}: {e}")
        return None

    async def get_installed_mod_info(self) -> List[InstalledModInfo]:
        """
        获取已安装模组信息

        有 manifest 的模组使用 manifest 中的注册中心信息，其余模组只有文件名。
        """
        result = []
        for entry in self.list_mods():
            file_name = entry["file_name"]
            locations = entry["locations"]
            location = "client" if locations == ["client"] else locations[0]
            file_path = self._file_path(file_name, locations)

            manifest = await self._read_manifest(file_name)
            if manifest:
                info = InstalledModInfo.from_manifest(
                    manifest, file_name=file_name, location=location, file_path=file_path
                )
            else:
                info = InstalledModInfo(
                    file_name=file_name,
                    name=strip_jar_suffix(file_name),
                    location=location,
                    file_path=file_path,
                )
            result.append(info)

        logger.debug(f"找到 {len(result)} 个模组，其中 {sum(1 for m in result if m.project_id)} 个有 manifest")
        return result

    async def get_disabled_mods(self) -> List[str]:
        """获取禁用模组文件名列表（记录文件与禁用目录取并集）"""
        disabled: List[str] = []
        if os.path.exists(self.disabled_list_path):
            try:
                data = await _read_json(self.disabled_list_path)
            except (OSError, json.JSONDecodeError) as e:
                raise ModFileError(
                    f"读取禁用模组列表失败: {e}", context={"path": self.disabled_list_path}
                )
            if not isinstance(data, list):
                raise ModFileError("禁用模组列表格式无效", context={"path": self.disabled_list_path})
            disabled.extend(str(name) for name in data)

        for name in _list_jars(self.disabled_dir) + [
            n for n in _list_jars(self.mods_dir) if n.endswith(DISABLED_SUFFIX)
        ]:
            file_name = name[: -len(DISABLED_SUFFIX)] if name.endswith(DISABLED_SUFFIX) else name
            if file_name not in disabled:
                disabled.append(file_name)
        return disabled

    async def save_disabled_mods(self, disabled_mods: List[str]) -> None:
        """保存禁用模组列表"""
        if not isinstance(disabled_mods, (list, tuple, set)):
            raise ValidationError("disabled_mods 必须是文件名列表")
        os.makedirs(os.path.dirname(self.disabled_list_path), exist_ok=True)
        async with aiofiles.open(self.disabled_list_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(sorted(set(disabled_mods)), indent=2))
        logger.info(f"已保存 {len(set(disabled_mods))} 个禁用模组")
