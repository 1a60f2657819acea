"""统一异常体系

所有业务异常继承 LockMigrateError，替代散落的 ValueError / RuntimeError。
CLI 层可据此输出友好提示，调用方可按 code 区分失败类型。
"""

from __future__ import annotations

from typing import Any


class LockMigrateError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(LockMigrateError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class InvalidArgumentError(LockMigrateError):
    """调用参数无效（如未提供任何 scope）"""

    code = "INVALID_ARGUMENT"


class LockfileNotFoundError(LockMigrateError):
    """锁文件不存在或为空"""

    code = "LOCKFILE_NOT_FOUND"


class LockfileParseError(LockMigrateError):
    """锁文件存在但无法解析"""

    code = "LOCKFILE_PARSE_ERROR"


class BackupError(LockMigrateError):
    """锁文件备份写入失败"""

    code = "BACKUP_ERROR"


class RegistryLookupError(LockMigrateError):
    """单个包的注册表查询失败"""

    code = "LOOKUP_FAILURE"

    def __init__(self, message: str, spec: str = "") -> None:
        super().__init__(message)
        self.spec = spec


class MigrationIncompleteError(LockMigrateError):
    """部分包查询失败，锁文件相对于请求的 scope 不完整

    failures: {锁文件 key: 错误信息}
    result: 本次运行的 MigrationResult（成功部分已写回）
    """

    code = "MIGRATION_INCOMPLETE"

    def __init__(
        self, message: str, failures: dict[str, str], result: Any = None,
    ) -> None:
        super().__init__(message)
        self.failures = failures
        self.result = result
