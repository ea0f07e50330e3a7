"""
CLI 模块

命令行接口实现。
"""

import asyncio
import json
from pathlib import Path

import click
import toml
import yaml
from loguru import logger

from modresolve import __version__
from modresolve.exceptions import ConfigParseError, ModResolveError
from modresolve.logger import setup_logger
from modresolve.models import ResolverConfig
from modresolve.orchestrator import ModSession
from modresolve.services.filename_heuristics import extract_version, matches_minecraft_version
from modresolve.services.version_matcher import compare_versions, satisfies


def load_config(config_path: str) -> dict:
    """加载配置文件"""
    path = Path(config_path)

    if not path.exists():
        raise click.ClickException(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            return toml.load(config_path)
        elif suffix == ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"配置文件解析失败: {e}", context={"path": config_path})
    raise click.ClickException(f"不支持的配置文件格式: {suffix}")


def _run(ctx: click.Context, action):
    """加载配置、创建会话并运行异步操作"""

    async def runner():
        config = ResolverConfig.from_dict(load_config(ctx.obj["config"]))
        async with ModSession(config) as session:
            return await action(session)

    try:
        return asyncio.run(runner())
    except ModResolveError as e:
        logger.error(f"运行失败: {e}")
        raise click.ClickException(str(e))


@click.group()
@click.option("-c", "--config", default="modresolve.toml", help="配置文件路径（TOML / JSON / YAML）")
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option("--log-file", type=click.Path(dir_okay=False), help="同时将日志写入该文件")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config: str, debug: bool, log_file: str):
    """modresolve - Minecraft 模组依赖解析与兼容性检查工具"""
    setup_logger(level="DEBUG" if debug else None, log_file=log_file)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.argument("a")
@click.argument("b")
def compare(a: str, b: str):
    """比较两个版本号，输出 -1 / 0 / 1"""
    click.echo(compare_versions(a, b))


@main.command(name="satisfies")
@click.argument("version_range")
@click.argument("target")
def satisfies_cmd(version_range: str, target: str):
    """检查 TARGET 是否满足版本范围，不满足时退出码为 1"""
    ok = satisfies(version_range, target)
    click.echo("true" if ok else "false")
    if not ok:
        raise SystemExit(1)


@main.command()
@click.argument("filename")
@click.option("--mc", "mc_version", required=True, help="目标 Minecraft 版本")
def inspect(filename: str, mc_version: str):
    """从文件名推断模组版本和 Minecraft 兼容性"""
    compat = matches_minecraft_version(filename, mc_version)
    click.echo(f"version:    {extract_version(filename) or 'unknown'}")
    click.echo(f"compatible: {str(compat.is_compatible).lower()}")
    click.echo(f"confidence: {compat.confidence}")


@main.command()
@click.option("--server", "server_path", help="服务器目录，覆盖配置文件中的 paths.server")
@click.pass_context
def check(ctx: click.Context, server_path: str):
    """检查已启用模组与目标 Minecraft 版本的兼容性"""
    results = _run(ctx, lambda s: s.check_compatibility(server_path))
    for r in results:
        mark = "✓" if r.compatible else "✗"
        line = f"[{mark}] {r.name} {r.current_version or '?'}"
        if r.has_update:
            line += f" -> {r.latest_version}"
        if r.error:
            line += f" ({r.error})"
        elif r.reason and not r.compatible:
            line += f" ({r.reason})"
        click.echo(line)
    incompatible = sum(1 for r in results if not r.compatible)
    logger.info(f"共 {len(results)} 个模组，{incompatible} 个不兼容")


@main.command(name="disabled-updates")
@click.option("--server", "server_path", help="服务器目录，覆盖配置文件中的 paths.server")
@click.pass_context
def disabled_updates(ctx: click.Context, server_path: str):
    """检查已禁用模组的可用更新"""
    results = _run(ctx, lambda s: s.check_disabled_updates(server_path))
    if not results:
        click.echo("没有已禁用的模组")
    for r in results:
        mark = "↑" if r.has_update else "-"
        click.echo(f"[{mark}] {r.name}: {r.reason}")


@main.command()
@click.argument("project")
@click.option("--version-id", help="指定版本 ID，默认使用最新兼容版本")
@click.option("--server", "server_path", help="服务器目录，用于对照本地安装状态")
@click.pass_context
def deps(ctx: click.Context, project: str, version_id: str, server_path: str):
    """解析模组的依赖并报告缺失、已禁用或版本不匹配的依赖"""
    results = _run(ctx, lambda s: s.resolve_dependencies(project, version_id, server_path))
    if not results:
        click.echo("没有需要处理的依赖")
    for dep in results:
        info = f" {dep.version_info}" if dep.version_info else ""
        click.echo(f"[{dep.status.value}] {dep.name} ({dep.project_id}){info}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="以 JSON 格式输出")
@click.pass_context
def match(ctx: click.Context, file: str, as_json: bool):
    """在注册中心搜索本地模组文件可能对应的项目"""
    result = _run(ctx, lambda s: s.match_file(file))
    if as_json:
        click.echo(json.dumps([m.to_dict() for m in result.matches], indent=2, ensure_ascii=False))
        return
    click.echo(f"搜索: {result.searched_name} ({result.searched_version or '未知版本'})")
    if not result.matches:
        click.echo("没有找到匹配的项目")
    for m in result.matches:
        reasons = ", ".join(m.reasons)
        flag = " [版本匹配]" if m.has_matching_version else ""
        click.echo(f"  {m.score:.2f}  {m.title} ({m.slug}){flag}  {reasons}")


if __name__ == "__main__":
    main()
