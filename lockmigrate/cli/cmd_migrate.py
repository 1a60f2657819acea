"""CLI — 锁文件迁移命令"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from lockmigrate.core.config import Config, get_config, init_config
from lockmigrate.core.exceptions import LockMigrateError, MigrationIncompleteError
from lockmigrate.core.lockfile import LockfileStore, packages_of
from lockmigrate.core.migrator import LockfileMigrator, normalize_scopes
from lockmigrate.core.models import MigrationResult
from lockmigrate.core.observer import LoggingObserver, NullObserver
from lockmigrate.core.package_key import select_packages


def register(group: click.Group) -> None:
    group.add_command(migrate)
    group.add_command(list_packages)


def _load_config(path: str | None) -> Config:
    try:
        return init_config(path) if path else get_config()
    except LockMigrateError as e:
        raise click.ClickException(str(e)) from e


def _echo_summary(result: MigrationResult) -> None:
    if result.backup_path:
        click.echo(f"已创建锁文件备份: {result.backup_path}")
    if result.written:
        click.echo(f"已更新 {result.changed} 个包 ({result.lockfile})")
    else:
        click.echo(f"{result.lockfile.name} 没有变化。")


directory_option = click.option(
    "--directory", "-d", required=True, help="项目目录（绝对或相对路径）",
)
scopes_option = click.option(
    "--scope", "--scopes", "-s", "scopes", multiple=True, required=True,
    help="需要更新的包 scope，如 @yourscope（可多次指定）",
)


@click.command()
@directory_option
@scopes_option
@click.option("--debug", is_flag=True, help="输出每个包的详细调试信息")
@click.option("--no-log", is_flag=True, help="不输出处理进度")
@click.option("--no-backup-file", is_flag=True, help="不创建锁文件备份")
@click.option("--max-workers", type=click.IntRange(min=1), default=None, help="并发查询数")
@click.option("--config", "-c", "config_path", default=None, help="配置文件路径")
def migrate(
    directory: str, scopes: tuple[str, ...], debug: bool, no_log: bool,
    no_backup_file: bool, max_workers: int | None, config_path: str | None,
) -> None:
    """用当前注册表返回的 integrity / tarball 刷新锁文件"""
    root = logging.getLogger()
    if no_log:
        root.setLevel(logging.WARNING)
    elif debug:
        root.setLevel(logging.DEBUG)

    migrator = LockfileMigrator(
        observer=NullObserver() if no_log else LoggingObserver(debug=debug),
        config=_load_config(config_path),
        max_workers=max_workers,
        backup_lockfile=not no_backup_file,
    )
    try:
        result = migrator.run(directory, scopes)
    except MigrationIncompleteError as e:
        if e.result is not None and e.result.backup_path:
            click.echo(f"已创建锁文件备份: {e.result.backup_path}")
        for key, message in e.failures.items():
            click.echo(f"  [FAIL] {key}: {message}", err=True)
        raise click.ClickException(str(e)) from e
    except LockMigrateError as e:
        raise click.ClickException(str(e)) from e
    _echo_summary(result)


@click.command(name="packages")
@directory_option
@scopes_option
@click.option("--config", "-c", "config_path", default=None, help="配置文件路径")
def list_packages(directory: str, scopes: tuple[str, ...], config_path: str | None) -> None:
    """列出匹配 scope 的包（不查询注册表）"""
    cfg = _load_config(config_path)
    try:
        scope_list = normalize_scopes(scopes)
        store = LockfileStore(Path(directory).resolve(), name=cfg.lockfile_name)
        refs = select_packages(packages_of(store.load()).keys(), scope_list)
    except LockMigrateError as e:
        raise click.ClickException(str(e)) from e
    if not refs:
        click.echo("没有匹配的包。")
        return
    for ref in refs:
        click.echo(f"  {ref.identifier:40s} {ref.key}")
