"""
配置数据模型

定义 modresolve 的配置结构，支持从 TOML / JSON / YAML 解析出的字典构建。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from modresolve.exceptions import ConfigValidationError


class ModLoader(Enum):
    """模组加载器"""

    FABRIC = "fabric"
    FORGE = "forge"
    QUILT = "quilt"
    NEOFORGE = "neoforge"


@dataclass
class MinecraftConfig:
    """Minecraft 相关配置"""

    version: str
    loader: ModLoader = ModLoader.FABRIC
    loader_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MinecraftConfig":
        version = data.get("version")
        if isinstance(version, list):
            version = version[0] if version else None
        if not version:
            raise ConfigValidationError("请配置 Minecraft 版本", context={"field": "minecraft.version"})

        loader_name = str(data.get("loader", data.get("mod_loader", "fabric"))).lower()
        try:
            loader = ModLoader(loader_name)
        except ValueError:
            raise ConfigValidationError(
                f"不支持的模组加载器: {loader_name}",
                context={"field": "minecraft.loader", "value": loader_name},
            )

        return cls(
            version=str(version),
            loader=loader,
            loader_version=data.get("loader_version"),
        )


@dataclass
class PathsConfig:
    """路径配置"""

    server: Optional[str] = None
    matches_file: str = "modrinth-matches.json"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathsConfig":
        return cls(
            server=data.get("server"),
            matches_file=data.get("matches_file", "modrinth-matches.json"),
        )


@dataclass
class APIConfig:
    """注册中心 API 配置"""

    base_url: str = "https://api.modrinth.com/v2"
    rate_limit: float = 0.5
    max_retries: int = 2
    retry_delay: float = 1.0
    timeout: float = 15.0
    user_agent: str = "modresolve/0.1.0"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APIConfig":
        cfg = cls(
            base_url=data.get("base_url", cls.base_url),
            rate_limit=float(data.get("rate_limit", cls.rate_limit)),
            max_retries=int(data.get("max_retries", cls.max_retries)),
            retry_delay=float(data.get("retry_delay", cls.retry_delay)),
            timeout=float(data.get("timeout", cls.timeout)),
            user_agent=data.get("user_agent", cls.user_agent),
        )
        if cfg.rate_limit < 0 or cfg.max_retries < 0 or cfg.retry_delay < 0:
            raise ConfigValidationError(
                "api.rate_limit / api.max_retries / api.retry_delay 不能为负数"
            )
        if cfg.timeout <= 0:
            raise ConfigValidationError("api.timeout 必须大于 0")
        return cfg


@dataclass
class ResolverConfig:
    """modresolve 完整配置"""

    minecraft: MinecraftConfig
    paths: PathsConfig = field(default_factory=PathsConfig)
    api: APIConfig = field(default_factory=APIConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolverConfig":
        """从字典创建配置"""
        if not isinstance(data, dict):
            raise ConfigValidationError("配置文件顶层必须是一个表")
        if "minecraft" not in data:
            raise ConfigValidationError("缺少 [minecraft] 配置段")

        return cls(
            minecraft=MinecraftConfig.from_dict(data["minecraft"]),
            paths=PathsConfig.from_dict(data.get("paths", {})),
            api=APIConfig.from_dict(data.get("api", {})),
        )
