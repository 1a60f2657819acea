"""处理进度观察者

核心逻辑不直接输出进度，每处理完一个包回调 on_package_processed()；
CLI 层注入 LoggingObserver 输出到日志，库调用默认使用 NullObserver。
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from lockmigrate.core.models import OutcomeStatus, PackageOutcome, PackageRef
from lockmigrate.utils.logger import package_extra

logger = logging.getLogger(__name__)


class MigrationObserver(Protocol):
    """单包处理完成回调，总在调用 run() 的线程上触发"""

    def on_package_processed(self, ref: PackageRef, outcome: PackageOutcome) -> None:
        ...


class NullObserver:
    """不做任何输出"""

    def on_package_processed(self, ref: PackageRef, outcome: PackageOutcome) -> None:
        pass


class LoggingObserver:
    """把处理结果写入日志；debug 模式附带当前 resolution 与注册表返回值"""

    def __init__(self, *, debug: bool = False, log: logging.Logger | None = None) -> None:
        self.debug = debug
        self._log = log or logger

    def on_package_processed(self, ref: PackageRef, outcome: PackageOutcome) -> None:
        extra = package_extra(ref.identifier, ref.key, outcome.status.value)
        if outcome.status is OutcomeStatus.FAILED:
            self._log.error("%s: %s", ref.identifier, outcome.message, extra=extra)
        elif outcome.status is OutcomeStatus.UPDATED:
            fields = ", ".join(
                f"{c.field}:{c.action.value}" for c in outcome.patch.changes
            )
            self._log.info("%s: 已更新 (%s)", ref.identifier, fields, extra=extra)
        elif outcome.status is OutcomeStatus.SKIPPED:
            self._log.info("%s: 跳过 (%s)", ref.identifier, outcome.message, extra=extra)
        else:
            self._log.info("%s: 未检测到变化", ref.identifier, extra=extra)

        if self.debug:
            self._log.debug("key: %s", ref.key, extra=extra)
            self._log.debug("当前:\n%s", _pretty(outcome.current), extra=extra)
            if outcome.fetched is not None:
                self._log.debug(
                    "注册表:\n%s", _pretty(outcome.fetched.to_dict()), extra=extra,
                )


def _pretty(value: object) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)
