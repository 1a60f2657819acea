"""锁文件包 key 解析与 scope 过滤

key 形如 /<name>/<version> 或 /<name>/<version>(<peer 后缀>)，
name 本身可含 /（如 @scope/pkg）。
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from lockmigrate.core.models import PackageRef


def parse_package_key(key: str) -> PackageRef:
    """解析锁文件 key

    去掉开头的一个 /，丢弃括号内的 peer 依赖后缀，再按最后一个 / 拆分 name 与 version:

        >>> parse_package_key("/@scope/pkg/1.2.3(react@18.0.0)").identifier
        '@scope/pkg@1.2.3'
    """
    body = key[1:] if key.startswith("/") else key
    body = body.split("(", 1)[0]
    name, _, version = body.rpartition("/")
    return PackageRef(key=key, name=name, version=version)


def matches_scopes(identifier: str, scopes: Iterable[str]) -> bool:
    """纯前缀匹配：@foo/bar@1.0.0 匹配 @foo，也会匹配 @fo"""
    return any(identifier.startswith(scope) for scope in scopes)


def select_packages(keys: Iterable[str], scopes: Sequence[str]) -> list[PackageRef]:
    """解析全部 key 并保留匹配 scope 的包，保持原有顺序"""
    refs = (parse_package_key(k) for k in keys)
    return [ref for ref in refs if matches_scopes(ref.identifier, scopes)]
