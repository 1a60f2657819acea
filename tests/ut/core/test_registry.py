"""注册表查询测试 — 注入假执行器，不启动子进程"""

from __future__ import annotations

import subprocess

import pytest

from lockmigrate.core.exceptions import RegistryLookupError
from lockmigrate.core.models import RegistryMetadata
from lockmigrate.core.registry import PnpmRegistryLookup
from lockmigrate.utils.shell import CommandResult, set_executor


class FakeExecutor:
    def __init__(self, result: CommandResult | None = None, exc: Exception | None = None) -> None:
        self.result = result or CommandResult(0, "", "")
        self.exc = exc
        self.calls: list[dict] = []

    def execute(self, cmd, *, cwd=".", timeout=None) -> CommandResult:  # type: ignore[no-untyped-def]
        self.calls.append({"cmd": cmd, "cwd": cwd, "timeout": timeout})
        if self.exc:
            raise self.exc
        return self.result


def _lookup(executor: FakeExecutor, **kwargs) -> PnpmRegistryLookup:  # type: ignore[no-untyped-def]
    return PnpmRegistryLookup(executor=executor, **kwargs)


class TestPnpmRegistryLookup:
    def test_success(self) -> None:
        ex = FakeExecutor(CommandResult(
            0,
            '{"integrity": "sha512-Z", "shasum": "abc", '
            '"tarball": "https://r/@scope/a/-/a-1.0.0.tgz"}\n',
            "",
        ))
        meta = _lookup(ex, cwd="/proj", timeout=30).lookup("@scope/a@1.0.0")

        assert meta == RegistryMetadata(
            integrity="sha512-Z", tarball="https://r/@scope/a/-/a-1.0.0.tgz",
        )
        assert ex.calls == [{
            "cmd": ["pnpm", "view", "@scope/a@1.0.0", "dist", "--json"],
            "cwd": "/proj",
            "timeout": 30,
        }]

    def test_custom_command_template(self) -> None:
        ex = FakeExecutor(CommandResult(0, '{"integrity": "sha512-Z"}', ""))
        _lookup(ex, command="npm view {spec} dist --json").lookup("a@1.0.0")
        assert ex.calls[0]["cmd"] == ["npm", "view", "a@1.0.0", "dist", "--json"]

    def test_global_executor_used_by_default(self) -> None:
        ex = FakeExecutor(CommandResult(0, '{"integrity": "sha512-Z"}', ""))
        set_executor(ex)
        assert PnpmRegistryLookup().lookup("a@1.0.0").integrity == "sha512-Z"
        assert len(ex.calls) == 1

    def test_nonzero_exit(self) -> None:
        ex = FakeExecutor(CommandResult(1, "", "ERR_PNPM_FETCH_404 Not Found"))
        with pytest.raises(RegistryLookupError, match="rc=1.*404") as exc_info:
            _lookup(ex).lookup("@scope/a@9.9.9")
        assert exc_info.value.spec == "@scope/a@9.9.9"
        assert exc_info.value.code == "LOOKUP_FAILURE"

    @pytest.mark.parametrize("stdout", ["", "   \n", "null", "[]", "{}", '"text"'])
    def test_no_metadata(self, stdout: str) -> None:
        with pytest.raises(RegistryLookupError, match="未返回"):
            _lookup(FakeExecutor(CommandResult(0, stdout, ""))).lookup("a@1.0.0")

    def test_invalid_json(self) -> None:
        with pytest.raises(RegistryLookupError, match="JSON"):
            _lookup(FakeExecutor(CommandResult(0, "{not json", ""))).lookup("a@1.0.0")

    def test_command_not_found(self) -> None:
        ex = FakeExecutor(exc=FileNotFoundError(2, "No such file", "pnpm"))
        with pytest.raises(RegistryLookupError, match="无法执行"):
            _lookup(ex).lookup("a@1.0.0")

    def test_timeout(self) -> None:
        ex = FakeExecutor(exc=subprocess.TimeoutExpired(["pnpm"], 5))
        with pytest.raises(RegistryLookupError, match="超时"):
            _lookup(ex, timeout=5).lookup("a@1.0.0")


class TestCommandResult:
    def test_error_summary_first_line(self) -> None:
        r = CommandResult(1, "", "\n ERR_PNPM_FETCH_404  GET https://r/@scope%2Fa: Not Found\n\ndetails\n")
        assert r.error_summary == "ERR_PNPM_FETCH_404  GET https://r/@scope%2Fa: Not Found"
        assert not r.success

    def test_error_summary_empty(self) -> None:
        assert CommandResult(1, "", "  \n").error_summary == ""
