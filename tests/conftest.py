"""测试共享 fixture — 示例锁文件 + 全局状态复位"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from lockmigrate.core.config import reset_config
from lockmigrate.utils.shell import get_executor, set_executor

SAMPLE_LOCKFILE = """\
lockfileVersion: 5.4

specifiers:
  '@other/b': 2.0.0
  '@scope/a': 1.0.0

dependencies:
  '@other/b': 2.0.0
  '@scope/a': 1.0.0

packages:

  /@other/b/2.0.0:
    resolution: {integrity: sha512-Y}
    dev: false

  /@scope/a/1.0.0:
    resolution: {integrity: sha512-X}
    dev: false
"""


@pytest.fixture(autouse=True)
def _reset_globals():
    """每个用例结束后恢复全局配置、命令执行器和根日志器"""
    executor = get_executor()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    set_executor(executor)
    reset_config()
    # CLI 入口会调用 setup_logging，只移除用例期间新增的 handler
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """包含示例 pnpm-lock.yaml 的项目目录"""
    (tmp_path / "pnpm-lock.yaml").write_text(SAMPLE_LOCKFILE, encoding="utf-8")
    return tmp_path
