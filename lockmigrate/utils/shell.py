"""子进程调用 — 注册表查询命令的执行层

注册表查询只依赖 CommandExecutor 协议；测试注入假执行器即可，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

# 错误摘要最多保留的字符数
_SUMMARY_LIMIT = 300


@dataclass
class CommandResult:
    """一次命令调用的结果"""

    returncode: int
    stdout: str
    stderr: str
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def error_summary(self) -> str:
        """stderr 的第一行非空内容，pnpm 把错误码放在这一行"""
        for line in self.stderr.splitlines():
            if line.strip():
                return line.strip()[:_SUMMARY_LIMIT]
        return ""


class CommandExecutor(Protocol):
    """执行参数列表形式的命令，不经过 shell

    查询在线程池中并发调用 execute()，实现必须线程安全。
    """

    def execute(
        self, args: Sequence[str], *, cwd: str = ".", timeout: float | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """在本机启动子进程

    可执行文件不存在、超时等启动层面的错误以 OSError /
    subprocess.TimeoutExpired 抛出，由调用方归类。
    """

    def execute(
        self, args: Sequence[str], *, cwd: str = ".", timeout: float | None = None,
    ) -> CommandResult:
        started = time.monotonic()
        r = subprocess.run(
            list(args), capture_output=True, text=True,
            cwd=cwd, check=False, timeout=timeout,
        )
        elapsed = time.monotonic() - started
        logger.debug("%s -> rc=%d (%.2fs, cwd=%s)", shlex.join(args), r.returncode, elapsed, cwd)
        return CommandResult(r.returncode, r.stdout, r.stderr, elapsed)


_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换默认执行器（测试注入假执行器）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor
