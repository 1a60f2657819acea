"""lockmigrate 日志配置

日志统一写到 stderr，stdout 只留给命令输出（汇总、包列表）。
LoggingObserver 记录的每条包级日志通过 extra 携带 package / key / status，
JSON 输出时成为独立字段，CI 可以直接按包筛选失败项。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO

# LoggingObserver 通过 extra 附加到日志记录上的字段
PACKAGE_FIELDS = ("package", "key", "status")

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def package_extra(package: str, key: str, status: str) -> dict[str, str]:
    """构造包级日志的 extra 参数"""
    return {"package": package, "key": key, "status": status}


class JSONFormatter(logging.Formatter):
    """每条日志一行 JSON

    示例:
        {"time": "2024-01-01T12:00:00+00:00", "level": "INFO",
         "logger": "lockmigrate.core.observer", "message": "...",
         "package": "@scope/a@1.0.0", "key": "/@scope/a/1.0.0", "status": "updated"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "time": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in PACKAGE_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    level: str = "INFO", json_output: bool = False, stream: IO[str] | None = None,
) -> None:
    """替换根日志器上的 handler 并设置级别

    参数:
        level: 日志级别名，无法识别时按 INFO 处理
        json_output: 使用 JSONFormatter
        stream: 输出流，默认 stderr
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)
