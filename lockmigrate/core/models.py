"""领域数据模型

数据类:
- PackageRef: 锁文件 key 与规范标识 name@version
- IntegrityOnly / TarballResolution / NonRegistrySource: resolution 的三种形态
- RegistryMetadata: 注册表返回的下载元数据
- FieldChange / ResolutionPatch: 字段级补丁
- PackageOutcome / MigrationResult: 单包处理结果与整体运行结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Union

# 参与比对的 resolution 字段，顺序即补丁顺序
RESOLUTION_FIELDS = ("integrity", "tarball", "type")

# 非注册表来源，此类 resolution 从不改写
NON_REGISTRY_TYPES = frozenset(("git", "directory"))


@dataclass(frozen=True)
class PackageRef:
    """锁文件中的一个包"""

    key: str
    name: str
    version: str

    @property
    def identifier(self) -> str:
        return f"{self.name}@{self.version}"


# =========================================================================
# resolution 三种形态（None 表示字段不存在，"" 表示存在但为空）
# =========================================================================

@dataclass(frozen=True)
class IntegrityOnly:
    """仅含 integrity 的注册表 resolution"""

    integrity: str


@dataclass(frozen=True)
class TarballResolution:
    """通用形态，携带 integrity / tarball / type 的任意子集"""

    integrity: str | None = None
    tarball: str | None = None
    type: str | None = None


@dataclass(frozen=True)
class NonRegistrySource:
    """git / directory 等非注册表来源"""

    type: str


Resolution = Union[IntegrityOnly, TarballResolution, NonRegistrySource]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _carried(value: Any) -> str:
    """存在但值为 null 的字段记为 ""，仍视为携带该字段"""
    return _text(value) or ""


def parse_resolution(raw: dict[str, Any]) -> Resolution:
    """由锁文件中的 resolution 映射构造对应形态，只在此处判断一次字段存在性"""
    if raw.get("type") in NON_REGISTRY_TYPES:
        return NonRegistrySource(type=raw["type"])
    present = {f: _carried(raw[f]) for f in RESOLUTION_FIELDS if f in raw}
    if set(present) == {"integrity"}:
        return IntegrityOnly(integrity=present["integrity"])
    return TarballResolution(**present)


@dataclass(frozen=True)
class RegistryMetadata:
    """注册表对某个 name@version 的当前下载元数据，缺失字段为 None"""

    integrity: str | None = None
    tarball: str | None = None
    type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryMetadata:
        return cls(**{f: _text(data.get(f)) for f in RESOLUTION_FIELDS})

    def to_dict(self) -> dict[str, str | None]:
        return {f: getattr(self, f) for f in RESOLUTION_FIELDS}


# =========================================================================
# 补丁
# =========================================================================

class PatchAction(str, Enum):
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True)
class FieldChange:
    """单个字段的变更；CLEAR 时 value 为 None"""

    field: str
    action: PatchAction
    value: str | None = None


@dataclass(frozen=True)
class ResolutionPatch:
    """字段级补丁，未出现在 changes 中的字段保持不变"""

    changes: tuple[FieldChange, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.changes)


# =========================================================================
# 运行结果
# =========================================================================

class OutcomeStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PackageOutcome:
    """单个包的处理结果，传递给观察者"""

    ref: PackageRef
    status: OutcomeStatus
    current: dict[str, Any] | None = None
    fetched: RegistryMetadata | None = None
    patch: ResolutionPatch = field(default_factory=ResolutionPatch)
    message: str = ""


@dataclass
class MigrationResult:
    """一次运行的汇总"""

    lockfile: Path
    changed: int = 0
    outcomes: list[PackageOutcome] = field(default_factory=list)
    written: bool = False
    backup_path: Path | None = None

    @property
    def matched(self) -> int:
        return len(self.outcomes)

    @property
    def failures(self) -> dict[str, str]:
        return {
            o.ref.key: o.message
            for o in self.outcomes if o.status is OutcomeStatus.FAILED
        }
