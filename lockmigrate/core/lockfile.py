"""锁文件读写与备份

锁文件在一次运行中只读取一次，有变更时只写回一次。
写回时直接编辑读取到的原文：只替换被修改包的 resolution 行，
空行、注释、其他 flow 映射和引号风格都按字节保留。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from lockmigrate.core.exceptions import (
    BackupError,
    LockfileNotFoundError,
    LockfileParseError,
)
from lockmigrate.utils.yaml_io import (
    FlowMap,
    atomic_copy,
    atomic_write,
    flow_mapping,
    save_yaml,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCKFILE_NAME = "pnpm-lock.yaml"
DEFAULT_BACKUP_MARKER = ".bck"

_PACKAGES_HEADER = re.compile(r"^packages:\s*(#.*)?$")


def backup_path_for(path: Path, marker: str = DEFAULT_BACKUP_MARKER) -> Path:
    """在最后一个扩展名前插入备份标记: pnpm-lock.yaml -> pnpm-lock.bck.yaml"""
    return path.with_name(f"{path.stem}{marker}{path.suffix}")


class LockfileStore:
    """单个项目目录下的锁文件"""

    def __init__(
        self,
        directory: str | Path,
        *,
        name: str = DEFAULT_LOCKFILE_NAME,
        backup_marker: str = DEFAULT_BACKUP_MARKER,
    ) -> None:
        self.directory = Path(directory)
        self.path = self.directory / name
        self.backup_path = backup_path_for(self.path, backup_marker)
        self._source: str | None = None

    def exists(self) -> bool:
        return self.path.is_file() and self.path.stat().st_size > 0

    def backup(self) -> Path | None:
        """锁文件存在时复制一份备份，返回备份路径；不存在时返回 None

        备份为原子复制，失败时不会留下半份文件。
        """
        if not self.path.is_file():
            logger.debug("锁文件不存在，跳过备份: %s", self.path)
            return None
        try:
            atomic_copy(self.path, self.backup_path)
        except OSError as e:
            raise BackupError(f"无法创建锁文件备份 {self.backup_path}: {e}") from e
        logger.info("已创建锁文件备份: %s", self.backup_path)
        return self.backup_path

    def load(self) -> dict[str, Any]:
        """读取并解析锁文件，原文保留用于写回

        异常:
            LockfileNotFoundError: 文件不存在或为空
            LockfileParseError: 内容无法解析为映射
        """
        if not self.exists():
            raise LockfileNotFoundError(f"找不到 {self.path.name}: {self.directory}")
        try:
            text = self.path.read_text(encoding="utf-8")
            data = yaml.safe_load(text)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise LockfileParseError(f"无法解析 {self.path}: {e}") from e
        if data is None:
            raise LockfileNotFoundError(f"{self.path.name} 为空: {self.directory}")
        if not isinstance(data, dict):
            raise LockfileParseError(
                f"无法解析 {self.path}: 顶层不是映射 ({type(data).__name__})"
            )
        packages = data.get("packages")
        if packages is not None and not isinstance(packages, dict):
            raise LockfileParseError(f"无法解析 {self.path}: packages 不是映射")
        self._source = text
        logger.debug("已读取锁文件: %s", self.path)
        return data

    def save(self, data: dict[str, Any], changed_keys: Iterable[str] | None = None) -> None:
        """原子写回锁文件

        给出 changed_keys 时只在原文中替换这些包的 resolution 行；
        未读取过原文、或原文中定位不到某个包时，整体重新序列化。
        """
        if changed_keys is not None and self._source is not None:
            text = _patched_source(self._source, data, list(changed_keys))
            if text is not None:
                atomic_write(self.path, text)
                self._source = text
                logger.info("已写回锁文件: %s", self.path)
                return
            logger.warning("无法在原文中定位 resolution，整体重写 %s", self.path.name)
        save_yaml(self.path, _for_output(data))
        self._source = None
        logger.info("已写回锁文件: %s", self.path)


def packages_of(data: dict[str, Any]) -> dict[str, Any]:
    return data.get("packages") or {}


def _patched_source(source: str, data: dict[str, Any], keys: list[str]) -> str | None:
    packages = packages_of(data)
    text = rewrite_resolutions(
        source, {key: packages[key]["resolution"] for key in keys},
    )
    # 编辑后的文本必须与内存中的文档一致
    if text is None or yaml.safe_load(text) != data:
        return None
    return text


def rewrite_resolutions(text: str, resolutions: dict[str, dict[str, Any]]) -> str | None:
    """把 resolutions 中每个包的 resolution 替换为单行 flow 映射，其余文本原样保留

    任一包在原文中定位不到时返回 None。
    """
    lines = text.splitlines(keepends=True)
    spans = _resolution_spans(lines)
    if not set(resolutions) <= set(spans):
        return None
    # 从后往前替换，前面的行号不变
    for key in sorted(resolutions, key=lambda k: spans[k][0], reverse=True):
        start, end, indent, eol = spans[key]
        lines[start:end] = [f"{indent}resolution: {flow_mapping(resolutions[key])}{eol}"]
    return "".join(lines)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _is_content(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _entry_key(stripped: str) -> str | None:
    """`/@scope/a/1.0.0:` 或 `'@scope/a@1.0.0':` -> 包 key"""
    if not stripped.endswith(":"):
        return None
    try:
        parsed = yaml.safe_load(stripped)
    except yaml.YAMLError:
        return None
    if isinstance(parsed, dict) and len(parsed) == 1:
        key = next(iter(parsed))
        return key if isinstance(key, str) else None
    return None


def _resolution_spans(lines: list[str]) -> dict[str, tuple[int, int, str, str]]:
    """packages 下每个包的 resolution 所占行区间: key -> (起始行, 结束行, 缩进, 换行符)

    block 形式的 resolution 连同其下的子行一并计入区间。
    """
    spans: dict[str, tuple[int, int, str, str]] = {}
    in_packages = False
    key_indent: int | None = None
    body_indent: int | None = None
    current: str | None = None
    i = 0
    while i < len(lines):
        line = lines[i]
        if not _is_content(line):
            i += 1
            continue
        indent = _indent(line)
        if indent == 0:
            in_packages = _PACKAGES_HEADER.match(line) is not None
            key_indent = body_indent = current = None
            i += 1
            continue
        if not in_packages:
            i += 1
            continue
        if key_indent is None:
            key_indent = indent
        if indent <= key_indent:
            current = _entry_key(line.strip()) if indent == key_indent else None
            body_indent = None
            i += 1
            continue
        if body_indent is None:
            body_indent = indent
        if (
            current is not None and current not in spans and indent == body_indent
            and line.lstrip().startswith("resolution:")
        ):
            end = i + 1
            while end < len(lines) and _is_content(lines[end]) and _indent(lines[end]) > indent:
                end += 1
            body = line.rstrip("\r\n")
            spans[current] = (i, end, line[:indent], line[len(body):])
            i = end
            continue
        i += 1
    return spans


def _for_output(data: dict[str, Any]) -> dict[str, Any]:
    """浅复制文档，把每个包的 resolution 包装为 FlowMap，不修改原文档"""
    packages = data.get("packages")
    if not isinstance(packages, dict):
        return data
    out_packages: dict[str, Any] = {}
    for key, entry in packages.items():
        if isinstance(entry, dict) and isinstance(entry.get("resolution"), dict):
            entry = {**entry, "resolution": FlowMap(entry["resolution"])}
        out_packages[key] = entry
    return {**data, "packages": out_packages}
