"""集中配置管理

替代各模块散落的 DEFAULT_* 常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖（CLI 参数优先于文件）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

import yaml

from lockmigrate.core.exceptions import ConfigError
from lockmigrate.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 锁文件
    lockfile_name: str = "pnpm-lock.yaml"
    backup_marker: str = ".bck"

    # 注册表查询，{spec} 替换为 name@version
    registry_command: str = "pnpm view {spec} dist --json"
    lookup_timeout: float | None = None

    # 执行
    max_workers: int = 8

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(f"max_workers 必须 >= 1: {self.max_workers}")
        if "{spec}" not in self.registry_command:
            raise ConfigError(
                f"registry_command 缺少 {{spec}} 占位符: {self.registry_command}"
            )

    @classmethod
    def from_file(cls, path: str) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, OSError, ValueError) as e:
            raise ConfigError(f"无法读取配置文件 {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(k) for k in data if k not in known)
        if unknown:
            logger.warning("忽略未知配置项 %s: %s", path, ", ".join(unknown))
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效 {path}: {e}") from e


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.debug("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """恢复为未初始化状态（测试使用）"""
    global _current  # noqa: PLW0603
    _current = None
