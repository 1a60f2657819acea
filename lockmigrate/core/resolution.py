"""resolution 比对与补丁应用

diff_resolution 只读，apply_patch 原地修改锁文件文档中的 resolution 映射。
"""

from __future__ import annotations

from typing import Any

from lockmigrate.core.models import (
    NON_REGISTRY_TYPES,
    RESOLUTION_FIELDS,
    FieldChange,
    NonRegistrySource,
    PatchAction,
    RegistryMetadata,
    Resolution,
    ResolutionPatch,
)


def diff_resolution(current: Resolution, fresh: RegistryMetadata) -> ResolutionPatch:
    """计算把 current 对齐到 fresh 所需的最小字段补丁

    每个字段独立判断:
      1. current 不携带该字段 → 跳过
      2. 值不同 → fresh 有值则 SET，无值（缺失或空串）则 CLEAR
      3. 值相同 → 不变

    git / directory 来源整体不改写；fresh 的 type 为非注册表类型时 type 字段不改写。
    """
    if isinstance(current, NonRegistrySource):
        return ResolutionPatch()

    changes: list[FieldChange] = []
    for name in RESOLUTION_FIELDS:
        old = getattr(current, name, None)
        if old is None:
            continue
        new = getattr(fresh, name)
        if name == "type" and new in NON_REGISTRY_TYPES:
            continue
        if old == new:
            continue
        if new:
            changes.append(FieldChange(name, PatchAction.SET, new))
        else:
            changes.append(FieldChange(name, PatchAction.CLEAR))
    return ResolutionPatch(tuple(changes))


def apply_patch(raw: dict[str, Any], patch: ResolutionPatch) -> None:
    """把补丁应用到 resolution 映射；CLEAR 删除键，序列化时该字段不再出现"""
    for change in patch.changes:
        if change.action is PatchAction.SET:
            raw[change.field] = change.value
        else:
            raw.pop(change.field, None)
