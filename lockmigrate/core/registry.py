"""注册表查询

RegistryLookup 协议: lookup("name@version") -> RegistryMetadata。
默认实现 PnpmRegistryLookup 执行 `pnpm view "<spec>" dist --json`，
在项目目录下运行，使项目自身的 .npmrc 注册表配置生效。
"""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from typing import Protocol

from lockmigrate.core.exceptions import RegistryLookupError
from lockmigrate.core.models import RegistryMetadata
from lockmigrate.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_COMMAND = "pnpm view {spec} dist --json"


class RegistryLookup(Protocol):
    """注册表查询协议，实现必须线程安全"""

    def lookup(self, spec: str) -> RegistryMetadata:
        """查询 name@version 的下载元数据，失败抛 RegistryLookupError"""
        ...


class PnpmRegistryLookup:
    """通过包管理器命令行查询当前配置的注册表"""

    def __init__(
        self,
        *,
        command: str = DEFAULT_REGISTRY_COMMAND,
        cwd: str = ".",
        timeout: float | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.command = command
        self.cwd = cwd
        self.timeout = timeout
        self._executor = executor

    def build_command(self, spec: str) -> list[str]:
        """拆分命令模板并替换 {spec}，整体作为一个参数传递，不经过 shell"""
        return [token.replace("{spec}", spec) for token in shlex.split(self.command)]

    def lookup(self, spec: str) -> RegistryMetadata:
        args = self.build_command(spec)
        executor = self._executor or get_executor()
        try:
            result = executor.execute(args, cwd=self.cwd, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RegistryLookupError(
                f"查询超时（{self.timeout}秒）: {spec}", spec=spec,
            ) from e
        except OSError as e:
            raise RegistryLookupError(f"无法执行查询命令 {args[0]}: {e}", spec=spec) from e

        if not result.success:
            raise RegistryLookupError(
                f"查询失败 {spec} (rc={result.returncode}): {result.error_summary}",
                spec=spec,
            )

        output = result.stdout.strip()
        if not output:
            raise RegistryLookupError(f"注册表未返回 {spec} 的元数据", spec=spec)
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise RegistryLookupError(f"查询结果不是合法 JSON: {spec}: {e}", spec=spec) from e
        if not isinstance(data, dict) or not data:
            raise RegistryLookupError(f"注册表未返回 {spec} 的元数据", spec=spec)

        logger.debug("查询完成: %s (%.2fs)", spec, result.elapsed)
        return RegistryMetadata.from_dict(data)
