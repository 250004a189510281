"""Tests for report source resolution and reading."""

import io
from pathlib import Path

import pytest

from secgate.config.loader import ConfigError
from secgate.config.schema import ReportConfig
from secgate.sources.adapter import (
    ReportSource,
    ReportUnavailable,
    parse_report_spec,
    read_report,
    resolve_sources,
)


class TestReportSpec:
    def test_format_and_path(self):
        cfg = parse_report_spec("bandit:reports/bandit.json")
        assert (cfg.tool, cfg.format, cfg.path) == (None, "bandit", "reports/bandit.json")

    def test_tool_format_and_path(self):
        cfg = parse_report_spec("container:sarif:trivy.sarif")
        assert (cfg.tool, cfg.format, cfg.path) == ("container", "sarif", "trivy.sarif")

    def test_path_may_contain_colons(self):
        cfg = parse_report_spec("zap:out/zap:staging.json")
        assert (cfg.tool, cfg.format, cfg.path) == (None, "zap", "out/zap:staging.json")

    @pytest.mark.parametrize("spec", ["bandit", "bandit:", ":report.json", ""])
    def test_invalid(self, spec):
        with pytest.raises(ConfigError):
            parse_report_spec(spec)


class TestResolve:
    def test_relative_to_base_dir(self, tmp_path: Path):
        [src] = resolve_sources([ReportConfig(format="bandit", path="bandit.json")], tmp_path)
        assert src.path == tmp_path / "bandit.json"

    def test_absolute_path_kept(self, tmp_path: Path):
        target = tmp_path / "abs.json"
        [src] = resolve_sources([ReportConfig(format="bandit", path=str(target))], Path("/elsewhere"))
        assert src.path == target

    def test_glob_expands_sorted(self, tmp_path: Path):
        (tmp_path / "reports").mkdir()
        for name in ("b.sarif", "a.sarif", "c.txt"):
            (tmp_path / "reports" / name).write_text("{}")
        sources = resolve_sources(
            [ReportConfig(format="sarif", path="reports/*.sarif", tool="sast")], tmp_path
        )
        assert [s.path.name for s in sources] == ["a.sarif", "b.sarif"]
        assert all(s.tool == "sast" for s in sources)

    def test_glob_without_match_is_missing_report(self, tmp_path: Path):
        [src] = resolve_sources([ReportConfig(format="zap", path="zap-*.json")], tmp_path)
        with pytest.raises(ReportUnavailable, match="no file matches"):
            read_report(src)

    def test_declared_order_kept(self, tmp_path: Path):
        sources = resolve_sources(
            [ReportConfig(format="zap", path="z.json"), ReportConfig(format="bandit", path="a.json")],
            tmp_path,
        )
        assert [s.format for s in sources] == ["zap", "bandit"]

    def test_single_stdin(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            resolve_sources(
                [ReportConfig(format="zap", path="-"), ReportConfig(format="bandit", path="-")],
                tmp_path,
            )


class TestRead:
    def test_file(self, tmp_path: Path):
        path = tmp_path / "r.json"
        path.write_bytes(b'{"results": []}')
        assert read_report(ReportSource(format="bandit", path=path)) == b'{"results": []}'

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ReportUnavailable, match="report not found"):
            read_report(ReportSource(format="bandit", path=tmp_path / "absent.json"))

    def test_directory_is_unreadable(self, tmp_path: Path):
        with pytest.raises(ReportUnavailable, match="unreadable"):
            read_report(ReportSource(format="bandit", path=tmp_path))

    def test_inline_text(self):
        src = ReportSource.inline("[]", "gitleaks", label="inline-gitleaks")
        assert read_report(src) == b"[]"
        assert src.display == "inline-gitleaks"

    def test_stdin(self, tmp_path: Path, monkeypatch):
        class _Stdin:
            buffer = io.BytesIO(b"[]")

        monkeypatch.setattr("sys.stdin", _Stdin())
        [src] = resolve_sources([ReportConfig(format="gitleaks", path="-")], tmp_path)
        assert src.display == "<stdin>"
        assert read_report(src) == b"[]"
