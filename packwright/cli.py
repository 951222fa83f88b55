"""
CLI 模块

命令行接口实现。
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional, TypeVar

import click
from loguru import logger

from packwright import __version__
from packwright.config import Settings, load_settings
from packwright.core import Packwright
from packwright.download import LoggingProgress
from packwright.exceptions import PackwrightError
from packwright.logger import setup_logger

T = TypeVar("T")


def run(settings: Settings, action: Callable[[Packwright], Awaitable[T]]) -> T:
    """在事件循环中执行操作，将 PackwrightError 转换为 ClickException"""

    async def runner():
        async with Packwright(settings) as app:
            return await action(app)

    try:
        return asyncio.run(runner())
    except PackwrightError as e:
        logger.debug(f"命令失败: {e.to_dict()}")
        raise click.ClickException(str(e))


def echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="配置文件 (toml / json / yaml)",
)
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], debug: bool):
    """Packwright - Minecraft 整合包管理工具"""
    try:
        settings = load_settings(config_path)
    except PackwrightError as e:
        raise click.ClickException(str(e))

    setup_logger(level="DEBUG" if debug else None, log_file=settings.log_file)
    ctx.obj = settings


@main.command("list")
@click.option("--installed", is_flag=True, help="列出已安装的整合包")
@click.pass_obj
def list_cmd(settings: Settings, installed: bool):
    """列出工作区或已安装的整合包"""

    async def action(app: Packwright):
        if installed:
            return await app.modpacks.list_available()
        return await app.workspaces.list_workspaces()

    manifests = run(settings, action)
    if not manifests:
        click.echo("没有找到整合包")
        return
    for manifest in manifests:
        click.echo(
            f"{manifest.id}\t{manifest.name} v{manifest.version}"
            f"\tMC {manifest.minecraft_version}\t{len(manifest.mods)} mods"
        )


@main.command()
@click.argument("modpack_id")
@click.option("--name", help="名称")
@click.option("--pack-version", "version", help="整合包版本")
@click.option("--mc", "minecraft_version", help="Minecraft 版本")
@click.option(
    "--loader",
    "modloader_type",
    type=click.Choice(["forge", "fabric", "quilt", "neoforge"]),
    help="模组加载器",
)
@click.option("--loader-version", "modloader_version", help="加载器版本")
@click.option("--author", help="作者")
@click.option("--description", help="描述")
@click.pass_obj
def create(settings: Settings, modpack_id: str, **metadata):
    """创建新的工作区"""
    metadata = {k: v for k, v in metadata.items() if v is not None}
    manifest = run(settings, lambda app: app.workspaces.create(modpack_id, **metadata))
    click.echo(f"已创建工作区: {manifest.id}")


@main.command("import")
@click.argument("minecraft_path", type=click.Path(exists=True, file_okay=False))
@click.argument("modpack_id")
@click.option("--name", help="名称")
@click.option("--mc", "minecraft_version", help="Minecraft 版本")
@click.pass_obj
def import_cmd(settings: Settings, minecraft_path: str, modpack_id: str, **metadata):
    """从现有 Minecraft 目录导入工作区"""
    metadata = {k: v for k, v in metadata.items() if v is not None}
    manifest, folders = run(
        settings,
        lambda app: app.workspaces.import_from_minecraft(
            minecraft_path, modpack_id, **metadata
        ),
    )
    click.echo(
        f"已导入 {manifest.id}: {len(manifest.mods)} 个模组, "
        f"目录: {', '.join(folders) or '无'}, 加载器: {manifest.modloader.type}"
    )


@main.command("add-url")
@click.argument("modpack_id")
@click.argument("url")
@click.option("--hash", "expected_hash", help="预期摘要")
@click.pass_obj
def add_url(settings: Settings, modpack_id: str, url: str, expected_hash: Optional[str]):
    """从直链添加模组"""
    progress = LoggingProgress()

    def on_progress(downloaded, total, percent):
        progress.on_item_progress(url, downloaded, total, percent)

    result = run(
        settings,
        lambda app: app.workspaces.add_mod_from_url(
            modpack_id, url, on_progress, expected_hash=expected_hash
        ),
    )
    click.echo(f"已添加: {result.filename} ({result.size} bytes)")


@main.command("add-mod")
@click.argument("modpack_id")
@click.argument("mod_ids", nargs=-1, type=int, required=True)
@click.option("--mc", "minecraft_version", help="Minecraft 版本")
@click.pass_obj
def add_mod(settings: Settings, modpack_id: str, mod_ids: tuple, minecraft_version):
    """从 CurseForge 添加模组"""
    progress = LoggingProgress()
    result = run(
        settings,
        lambda app: app.workspaces.add_mods_from_catalog(
            modpack_id,
            mod_ids,
            minecraft_version,
            progress.on_item_progress,
            progress.on_overall_progress,
        ),
    )
    for item in result.successful:
        click.echo(f"✓ {item.filename}")
    for failure in result.failed:
        click.echo(f"✗ {failure.filename}: {failure.error}")
    if result.failed:
        raise click.exceptions.Exit(1)


@main.command()
@click.argument("modpack_id")
@click.argument("query")
@click.option("--mc", "minecraft_version", help="Minecraft 版本")
@click.pass_obj
def search(settings: Settings, modpack_id: str, query: str, minecraft_version):
    """在 CurseForge 中搜索模组"""
    mods = run(
        settings,
        lambda app: app.workspaces.search(modpack_id, query, minecraft_version),
    )
    for mod in mods:
        click.echo(f"{mod.id}\t{mod.name}\t{', '.join(mod.authors)}")


@main.command()
@click.argument("modpack_id")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出")
@click.pass_obj
def status(settings: Settings, modpack_id: str, as_json: bool):
    """对比已安装整合包与清单"""
    result = run(settings, lambda app: app.modpacks.compare(modpack_id))
    if as_json:
        echo_json(result.to_dict())
        return
    for mod in result.missing:
        click.echo(f"缺失\t{mod.filename}")
    for outdated in result.outdated:
        click.echo(f"过期\t{outdated.filename}\t{outdated.current_hash}")
    for installed in result.extra:
        click.echo(f"多余\t{installed.filename}")
    click.echo(
        f"最新 {len(result.up_to_date)}, 缺失 {len(result.missing)}, "
        f"过期 {len(result.outdated)}, 多余 {len(result.extra)}"
    )


@main.command()
@click.argument("modpack_id")
@click.option("--only-new", is_flag=True, help="只下载不存在的文件")
@click.option("--prune", is_flag=True, help="删除清单之外的模组")
@click.pass_obj
def sync(settings: Settings, modpack_id: str, only_new: bool, prune: bool):
    """按清单同步已安装的整合包"""
    progress = LoggingProgress()
    report = run(
        settings,
        lambda app: app.modpacks.sync(
            modpack_id,
            only_new=only_new,
            prune=prune,
            on_item_progress=progress.on_item_progress,
            on_overall_progress=progress.on_overall_progress,
        ),
    )
    batch = report.batch
    click.echo(
        f"成功 {len(batch.successful)}, 失败 {len(batch.failed)}, "
        f"跳过 {len(batch.skipped)}, 删除 {len(report.removed)}"
    )
    for failure in batch.failed:
        click.echo(f"✗ {failure.filename}: {failure.error}")
    if batch.failed:
        raise click.exceptions.Exit(1)


@main.command()
@click.argument("modpack_id")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出")
@click.pass_obj
def stats(settings: Settings, modpack_id: str, as_json: bool):
    """已安装整合包统计"""
    result = run(settings, lambda app: app.modpacks.stats(modpack_id))
    if as_json:
        echo_json(result.to_dict())
        return
    click.echo(
        f"模组 {result.total_mods} 个, 共 {result.total_size / (1024 * 1024):.2f} MB"
    )
    click.echo(
        f"最新 {result.up_to_date}, 缺失 {result.missing}, "
        f"过期 {result.outdated}, 多余 {result.extra}"
    )


@main.command()
@click.argument("modpack_id")
@click.option("--zip", "as_zip", is_flag=True, help="同时生成 zip")
@click.option("--install", is_flag=True, help="将清单注册为已安装整合包")
@click.pass_obj
def export(settings: Settings, modpack_id: str, as_zip: bool, install: bool):
    """导出工作区"""

    async def action(app: Packwright):
        result = await app.workspaces.export(modpack_id, as_zip=as_zip)
        if install:
            await app.modpacks.create(result.manifest, overwrite=True)
        return result

    result = run(settings, action)
    click.echo(f"已导出到: {result.path}")
    if result.zip_path:
        click.echo(f"ZIP: {result.zip_path}")


if __name__ == "__main__":
    main()
