"""锁文件注册表信息迁移

把 pnpm-lock.yaml 中匹配 scope 的包的 resolution（integrity / tarball / type）
对齐到当前配置的注册表返回的值，其余内容保持不变。

流程:
  1. 解析目标目录为绝对路径，校验 scope
  2. 按需备份锁文件（pnpm-lock.bck.yaml）
  3. 读取锁文件，解析包 key 并按 scope 过滤
  4. 线程池并发查询注册表，结果回到调用线程上逐个比对并打补丁
  5. 存在查询失败的包时抛 MigrationIncompleteError，不写回
  6. 有变更才写回，只替换被修改包的 resolution 行

用法:
    from lockmigrate.core.migrator import update_registry_information

    changed = update_registry_information(".", ["@yourscope"], backup_lockfile=True)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from lockmigrate.core.config import Config, get_config
from lockmigrate.core.exceptions import (
    InvalidArgumentError,
    MigrationIncompleteError,
    RegistryLookupError,
)
from lockmigrate.core.lockfile import LockfileStore, packages_of
from lockmigrate.core.models import (
    MigrationResult,
    NonRegistrySource,
    OutcomeStatus,
    PackageOutcome,
    PackageRef,
    RegistryMetadata,
    parse_resolution,
)
from lockmigrate.core.observer import LoggingObserver, MigrationObserver, NullObserver
from lockmigrate.core.package_key import select_packages
from lockmigrate.core.registry import PnpmRegistryLookup, RegistryLookup
from lockmigrate.core.resolution import apply_patch, diff_resolution

logger = logging.getLogger(__name__)


def normalize_scopes(scopes: str | Iterable[str]) -> list[str]:
    """单个字符串视为一个 scope；为空或含空白 scope 时抛 InvalidArgumentError"""
    items = [scopes] if isinstance(scopes, str) else list(scopes)
    if not items:
        raise InvalidArgumentError("请至少提供一个 scope 用于识别需要处理的包")
    blank = [s for s in items if not s or not s.strip()]
    if blank:
        # 空前缀会匹配全部包
        raise InvalidArgumentError("scope 不能为空字符串")
    return list(dict.fromkeys(items))


def _resolution_of(entry: Any) -> dict[str, Any] | None:
    if not isinstance(entry, dict):
        return None
    raw = entry.get("resolution")
    return raw if isinstance(raw, dict) else None


class LockfileMigrator:
    """单次迁移运行

    只有一个锁文件文档实例；工作线程只执行查询，文档的读取、比对和修改
    全部发生在调用 run() 的线程上，因此无需加锁。
    """

    def __init__(
        self,
        *,
        lookup: RegistryLookup | None = None,
        observer: MigrationObserver | None = None,
        config: Config | None = None,
        max_workers: int | None = None,
        backup_lockfile: bool = False,
    ) -> None:
        self.config = config or get_config()
        self.max_workers = max(1, max_workers or self.config.max_workers)
        self.backup_lockfile = backup_lockfile
        self.observer: MigrationObserver = observer or NullObserver()
        self._lookup = lookup

    def _make_lookup(self, root: Path) -> RegistryLookup:
        if self._lookup is not None:
            return self._lookup
        return PnpmRegistryLookup(
            command=self.config.registry_command,
            cwd=str(root),
            timeout=self.config.lookup_timeout,
        )

    def run(self, directory: str | Path, scopes: str | Iterable[str]) -> MigrationResult:
        """执行迁移，返回运行汇总

        异常:
            InvalidArgumentError: 未提供 scope
            BackupError: 请求了备份但备份失败
            LockfileNotFoundError / LockfileParseError: 锁文件缺失或无法解析
            MigrationIncompleteError: 部分包查询失败（锁文件未写回）
        """
        scope_list = normalize_scopes(scopes)
        root = Path(directory).expanduser().resolve()

        store = LockfileStore(
            root,
            name=self.config.lockfile_name,
            backup_marker=self.config.backup_marker,
        )
        result = MigrationResult(lockfile=store.path)

        if self.backup_lockfile:
            result.backup_path = store.backup()

        data = store.load()
        packages = packages_of(data)
        refs = select_packages(packages.keys(), scope_list)
        logger.info("识别到 %d 个匹配 %s 的包", len(refs), ", ".join(scope_list))

        # 同一 name@version 可能对应多个 key（不同 peer 后缀），只查询一次
        pending: dict[str, list[PackageRef]] = {}
        for ref in refs:
            raw = _resolution_of(packages[ref.key])
            if raw is None:
                self._record(result, PackageOutcome(
                    ref=ref, status=OutcomeStatus.SKIPPED, message="没有 resolution",
                ))
                continue
            current = parse_resolution(raw)
            if isinstance(current, NonRegistrySource):
                self._record(result, PackageOutcome(
                    ref=ref, status=OutcomeStatus.SKIPPED, current=dict(raw),
                    message=f"{current.type} 来源不改写",
                ))
                continue
            pending.setdefault(ref.identifier, []).append(ref)

        lookup = self._make_lookup(root)
        for spec, fetched, error in self._lookup_all(lookup, list(pending)):
            for ref in pending[spec]:
                if error is not None or fetched is None:
                    outcome = PackageOutcome(
                        ref=ref, status=OutcomeStatus.FAILED, message=str(error),
                    )
                else:
                    outcome = self._update_entry(packages, ref, fetched)
                self._record(result, outcome)

        order = {ref.key: i for i, ref in enumerate(refs)}
        result.outcomes.sort(key=lambda o: order[o.ref.key])

        failures = result.failures
        if failures:
            raise MigrationIncompleteError(
                f"{len(failures)} 个包无法从注册表刷新，锁文件未写回: {', '.join(failures)}",
                failures=failures,
                result=result,
            )

        if result.changed > 0:
            updated = [o.ref.key for o in result.outcomes if o.status is OutcomeStatus.UPDATED]
            store.save(data, changed_keys=updated)
            result.written = True
            logger.info("已更新 %d 个包", result.changed)
        else:
            logger.info("%s 没有变化", store.path.name)
        return result

    def _lookup_all(
        self, lookup: RegistryLookup, specs: Sequence[str],
    ) -> Iterator[tuple[str, RegistryMetadata | None, RegistryLookupError | None]]:
        """并发查询，按完成顺序产出 (spec, 元数据, 错误)；等待全部查询结束"""
        if not specs:
            return
        workers = min(self.max_workers, len(specs))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(lookup.lookup, spec): spec for spec in specs}
            for future in as_completed(futures):
                spec = futures[future]
                try:
                    yield spec, future.result(), None
                except RegistryLookupError as e:
                    logger.debug("查询失败: %s: %s", spec, e)
                    yield spec, None, e

    def _update_entry(
        self, packages: dict[str, Any], ref: PackageRef, fetched: RegistryMetadata,
    ) -> PackageOutcome:
        """比对文档中当前的 resolution 并原地应用补丁"""
        raw = packages[ref.key]["resolution"]
        snapshot = dict(raw)
        patch = diff_resolution(parse_resolution(raw), fetched)
        if not patch.changed:
            return PackageOutcome(
                ref=ref, status=OutcomeStatus.UNCHANGED, current=snapshot, fetched=fetched,
            )
        apply_patch(raw, patch)
        return PackageOutcome(
            ref=ref, status=OutcomeStatus.UPDATED, current=snapshot,
            fetched=fetched, patch=patch,
        )

    def _record(self, result: MigrationResult, outcome: PackageOutcome) -> None:
        result.outcomes.append(outcome)
        if outcome.status is OutcomeStatus.UPDATED:
            result.changed += 1
        self.observer.on_package_processed(outcome.ref, outcome)


def update_registry_information(
    directory: str | Path,
    scopes: str | Iterable[str],
    *,
    debug: bool = False,
    backup_lockfile: bool = False,
    log: bool = False,
    max_workers: int | None = None,
    lookup: RegistryLookup | None = None,
    observer: MigrationObserver | None = None,
    config: Config | None = None,
) -> int:
    """刷新锁文件中匹配 scope 的包的注册表信息，返回被修改的包数量

    参数:
        directory: 项目目录（绝对或相对路径），从其根目录读取锁文件
        scopes: 需要更新的包 scope，如 ["@yourscope"]
        debug: 日志中附带每个包的当前 resolution 与注册表返回值
        backup_lockfile: 修改前把锁文件复制为 pnpm-lock.bck.yaml
        log: 为 True 且未指定 observer 时，通过 LoggingObserver 输出进度
    """
    if observer is None and log:
        observer = LoggingObserver(debug=debug)
    migrator = LockfileMigrator(
        lookup=lookup,
        observer=observer,
        config=config,
        max_workers=max_workers,
        backup_lockfile=backup_lockfile,
    )
    return migrator.run(directory, scopes).changed
