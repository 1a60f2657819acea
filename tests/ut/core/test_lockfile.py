"""锁文件读写与备份测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from lockmigrate.core.exceptions import (
    BackupError,
    LockfileNotFoundError,
    LockfileParseError,
)
from lockmigrate.core.lockfile import LockfileStore, backup_path_for, rewrite_resolutions
from lockmigrate.utils.yaml_io import flow_mapping

FORMATTED_LOCKFILE = """\
lockfileVersion: 5.4

specifiers:
  '@scope/a': ^1.0.0

packages:

  # registry packages
  /@scope/a/1.0.0:
    resolution: {integrity: sha512-OLD, tarball: https://old.example/a.tgz}
    engines: {node: '>=14'}
    cpu: [x64]
    os: [darwin]
    dev: false

  /@scope/b/2.0.0:
    resolution: {integrity: sha512-B}
    peerDependencies:
      react: '>=17'
    dev: false
"""


def _changed_lines(before: str, after: str) -> list[tuple[str, str]]:
    old, new = before.splitlines(), after.splitlines()
    assert len(old) == len(new)
    return [(a, b) for a, b in zip(old, new) if a != b]


class TestBackupPath:
    @pytest.mark.parametrize(("name", "expected"), [
        ("pnpm-lock.yaml", "pnpm-lock.bck.yaml"),
        ("my.lock.yaml", "my.lock.bck.yaml"),
        ("lockfile", "lockfile.bck"),
    ])
    def test_marker_before_suffix(self, tmp_path: Path, name: str, expected: str) -> None:
        assert backup_path_for(tmp_path / name) == tmp_path / expected

    def test_custom_marker(self, tmp_path: Path) -> None:
        store = LockfileStore(tmp_path, backup_marker=".orig")
        assert store.backup_path.name == "pnpm-lock.orig.yaml"


class TestLoad:
    def test_load(self, project: Path) -> None:
        data = LockfileStore(project).load()
        assert data["lockfileVersion"] == 5.4
        assert list(data["packages"]) == ["/@other/b/2.0.0", "/@scope/a/1.0.0"]

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(LockfileNotFoundError):
            LockfileStore(tmp_path).load()

    @pytest.mark.parametrize("content", ["", "\n# only a comment\n"])
    def test_empty(self, tmp_path: Path, content: str) -> None:
        (tmp_path / "pnpm-lock.yaml").write_text(content)
        with pytest.raises(LockfileNotFoundError):
            LockfileStore(tmp_path).load()

    @pytest.mark.parametrize("content", [
        "packages: [unclosed\n",
        "- just\n- a list\n",
        "packages:\n  - a\n",
    ])
    def test_unparsable(self, tmp_path: Path, content: str) -> None:
        (tmp_path / "pnpm-lock.yaml").write_text(content)
        with pytest.raises(LockfileParseError):
            LockfileStore(tmp_path).load()


class TestSave:
    def test_resolution_written_in_flow_style(self, project: Path) -> None:
        store = LockfileStore(project)
        data = store.load()
        data["packages"]["/@scope/a/1.0.0"]["resolution"] = {
            "integrity": "sha512-Z", "tarball": "https://r/a.tgz",
        }
        store.save(data)

        text = store.path.read_text(encoding="utf-8")
        assert "resolution: {integrity: sha512-Z, tarball: " in text
        reloaded = yaml.safe_load(text)
        assert reloaded["packages"]["/@scope/a/1.0.0"] == {
            "resolution": {"integrity": "sha512-Z", "tarball": "https://r/a.tgz"},
            "dev": False,
        }
        # 原文档对象未被替换为 FlowMap
        assert type(data["packages"]["/@scope/a/1.0.0"]["resolution"]) is dict

    def test_key_order_preserved(self, project: Path) -> None:
        store = LockfileStore(project)
        store.save(store.load())
        assert list(yaml.safe_load(store.path.read_text())) == [
            "lockfileVersion", "specifiers", "dependencies", "packages",
        ]


class TestBackup:
    def test_backup_is_byte_identical(self, project: Path) -> None:
        store = LockfileStore(project)
        original = store.path.read_bytes()
        assert store.backup() == project / "pnpm-lock.bck.yaml"
        assert store.backup_path.read_bytes() == original

    def test_no_lockfile_no_backup(self, tmp_path: Path) -> None:
        store = LockfileStore(tmp_path)
        assert store.backup() is None
        assert not store.backup_path.exists()

    def test_copy_failure(self, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(src: Path, dest: Path) -> None:
            raise PermissionError(13, "Permission denied", str(dest))

        monkeypatch.setattr("lockmigrate.core.lockfile.atomic_copy", boom)
        store = LockfileStore(project)
        with pytest.raises(BackupError, match="备份"):
            store.backup()
        assert not store.backup_path.exists()


class TestWriteBack:
    def test_only_resolution_line_changes(self, tmp_path: Path) -> None:
        path = tmp_path / "pnpm-lock.yaml"
        path.write_text(FORMATTED_LOCKFILE, encoding="utf-8")
        store = LockfileStore(tmp_path)
        data = store.load()
        data["packages"]["/@scope/a/1.0.0"]["resolution"]["integrity"] = "sha512-NEW"

        store.save(data, changed_keys=["/@scope/a/1.0.0"])

        after = path.read_text(encoding="utf-8")
        assert _changed_lines(FORMATTED_LOCKFILE, after) == [(
            "    resolution: {integrity: sha512-OLD, tarball: https://old.example/a.tgz}",
            "    resolution: {integrity: sha512-NEW, tarball: https://old.example/a.tgz}",
        )]
        assert yaml.safe_load(after) == data

    def test_cleared_field_dropped_from_line(self, tmp_path: Path) -> None:
        path = tmp_path / "pnpm-lock.yaml"
        path.write_text(FORMATTED_LOCKFILE, encoding="utf-8")
        store = LockfileStore(tmp_path)
        data = store.load()
        del data["packages"]["/@scope/a/1.0.0"]["resolution"]["integrity"]

        store.save(data, changed_keys=["/@scope/a/1.0.0"])

        assert _changed_lines(FORMATTED_LOCKFILE, path.read_text(encoding="utf-8")) == [(
            "    resolution: {integrity: sha512-OLD, tarball: https://old.example/a.tgz}",
            "    resolution: {tarball: https://old.example/a.tgz}",
        )]

    def test_block_resolution_collapsed_to_flow(self) -> None:
        text = (
            "packages:\n"
            "  /@scope/a/1.0.0:\n"
            "    resolution:\n"
            "      integrity: sha512-OLD\n"
            "      tarball: https://old.example/a.tgz\n"
            "    dev: false\n"
        )
        out = rewrite_resolutions(text, {"/@scope/a/1.0.0": {"integrity": "sha512-NEW"}})
        assert out == (
            "packages:\n"
            "  /@scope/a/1.0.0:\n"
            "    resolution: {integrity: sha512-NEW}\n"
            "    dev: false\n"
        )

    def test_quoted_key_and_crlf(self) -> None:
        text = (
            "packages:\r\n"
            "  '/@scope/a/1.0.0(react@18.2.0)':\r\n"
            "    resolution: {integrity: sha512-OLD}\r\n"
            "    dev: false\r\n"
        )
        out = rewrite_resolutions(
            text, {"/@scope/a/1.0.0(react@18.2.0)": {"integrity": "sha512-NEW"}},
        )
        assert out == text.replace("sha512-OLD", "sha512-NEW")

    def test_resolution_outside_packages_ignored(self) -> None:
        text = (
            "importers:\n"
            "  /@scope/a/1.0.0:\n"
            "    resolution: {integrity: sha512-OLD}\n"
        )
        assert rewrite_resolutions(text, {"/@scope/a/1.0.0": {"integrity": "x"}}) is None

    def test_falls_back_to_full_dump(
        self, project: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
    ) -> None:
        monkeypatch.setattr("lockmigrate.core.lockfile.rewrite_resolutions", lambda text, r: None)
        store = LockfileStore(project)
        data = store.load()
        data["packages"]["/@scope/a/1.0.0"]["resolution"] = {"integrity": "sha512-Z"}

        with caplog.at_level("WARNING", logger="lockmigrate"):
            store.save(data, changed_keys=["/@scope/a/1.0.0"])

        assert "整体重写" in caplog.text
        assert yaml.safe_load(store.path.read_text()) == data

    def test_large_lockfile_not_rejected(
        self, project: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("lockmigrate.utils.yaml_io.MAX_YAML_SIZE", 10)
        assert "packages" in LockfileStore(project).load()


class TestFlowMapping:
    @pytest.mark.parametrize(("data", "expected"), [
        ({"integrity": "sha512-AB+/cd=="}, "{integrity: sha512-AB+/cd==}"),
        (
            {"integrity": "sha1-x", "tarball": "https://r.example/@scope/a/-/a-1.0.0.tgz"},
            "{integrity: sha1-x, tarball: https://r.example/@scope/a/-/a-1.0.0.tgz}",
        ),
        ({"tarball": "file:a.tgz"}, "{tarball: file:a.tgz}"),
    ])
    def test_plain_values_unquoted(self, data: dict, expected: str) -> None:
        assert flow_mapping(data) == expected

    @pytest.mark.parametrize("value", ["a, b", "true", "1.0", "", "x #y", "@scope"])
    def test_ambiguous_values_read_back(self, value: str) -> None:
        assert yaml.safe_load(flow_mapping({"tarball": value})) == {"tarball": value}
