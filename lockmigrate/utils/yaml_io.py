"""YAML 文件统一读写工具

集中管理 YAML 文件的序列化/反序列化，统一 encoding="utf-8"、空值保护、
原子写入。FlowMap 用于把指定映射输出为单行 flow 风格（如锁文件中的 resolution）。
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (50MB)，防止异常大文件导致内存耗尽
MAX_YAML_SIZE = 50 * 1024 * 1024

# 避免长 flow 映射被折行
_DUMP_WIDTH = 4096


class FlowMap(dict):
    """序列化时以 flow 风格 {a: b, c: d} 输出的映射"""


class _Dumper(yaml.SafeDumper):
    pass


def _represent_flow_map(dumper: yaml.SafeDumper, data: FlowMap) -> yaml.Node:
    return dumper.represent_mapping(
        "tag:yaml.org,2002:map", data, flow_style=True,
    )


_Dumper.add_representer(FlowMap, _represent_flow_map)


def flow_mapping(data: dict[str, Any]) -> str:
    """把映射序列化为单行 flow 文本 {a: b, c: d}

    能按原样读回的字符串不加引号（与 pnpm 写出的锁文件一致），
    其余标量交给 PyYAML 决定引号。
    """
    items = ", ".join(
        f"{_flow_scalar(k)}: {_flow_scalar(v)}" for k, v in data.items()
    )
    return "{" + items + "}"


def _flow_scalar(value: Any) -> str:
    if isinstance(value, str) and value and _reads_back_plain(value):
        return value
    text = yaml.dump(
        [value], Dumper=_Dumper, default_flow_style=True, width=_DUMP_WIDTH,
    )
    return text.strip()[1:-1]


def _reads_back_plain(value: str) -> bool:
    try:
        return yaml.safe_load(f"{{k: {value}}}") == {"k": value}
    except yaml.YAMLError:
        return False


def _tmp_sibling(path: Path) -> tuple[int, str]:
    return tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp",
    )


def atomic_write(path: Path, content: str) -> None:
    """原子写入文件：先写临时文件再 rename，防止中途崩溃导致损坏

    异常:
        OSError: 文件写入或移动失败
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = _tmp_sibling(path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        if path.exists():
            # mkstemp 创建的文件权限为 0600，沿用原文件权限
            shutil.copymode(path, tmp)
        os.replace(tmp, str(path))
    except Exception:
        # 只捕获普通异常，不拦截 KeyboardInterrupt/SystemExit
        try:
            os.unlink(tmp)
        except OSError:
            # 临时文件清理失败不影响原异常抛出
            pass
        raise


def atomic_copy(src: Path, dest: Path) -> None:
    """原子复制文件：目标要么是完整副本，要么保持原状

    异常:
        OSError: 读取源文件或写入目标失败
    """
    fd, tmp = _tmp_sibling(dest)
    os.close(fd)
    try:
        shutil.copy2(src, tmp)
        os.replace(tmp, str(dest))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def check_size(p: Path) -> None:
    """文件超过 MAX_YAML_SIZE 时抛 ValueError"""
    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_YAML_SIZE} 字节"
        )


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    返回:
        dict: 解析后的字典。如果文件不存在、为空、或内容不是字典类型，返回空字典

    异常:
        yaml.YAMLError: YAML 格式错误
        OSError: IO 错误
        ValueError: 文件过大
    """
    p = Path(path)
    if not p.exists():
        return {}
    check_size(p)

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise
    except OSError as e:
        logger.error("读取文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result


def dump_yaml(data: Any) -> str:
    """序列化为 YAML 文本：保持键顺序，允许 Unicode，FlowMap 单行输出"""
    return yaml.dump(
        data, Dumper=_Dumper, default_flow_style=False,
        allow_unicode=True, sort_keys=False, width=_DUMP_WIDTH,
    )


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件

    异常:
        OSError: 文件写入失败
        yaml.YAMLError: YAML 序列化失败
    """
    p = Path(path)
    try:
        atomic_write(p, dump_yaml(data))
    except yaml.YAMLError as e:
        logger.error("序列化 YAML 数据失败: %s, 错误: %s", path, e)
        raise
    except OSError as e:
        logger.error("写入文件失败: %s, 错误: %s", path, e)
        raise
