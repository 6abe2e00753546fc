#!/usr/bin/env python3

"""End-to-end tests for the command line entry point."""

import json
from pathlib import Path

import pytest

from struct_packer.main import main, parse_args

ENV_VARS = (
    "STRUCT_PACKER_INPUT",
    "STRUCT_PACKER_OUTPUT_DIR",
    "STRUCT_PACKER_LOG_DIR",
    "STRUCT_PACKER_WORKERS",
    "STRUCT_PACKER_PROFILE",
    "STRUCT_PACKER_REPACK",
    "STRUCT_PACKER_FORMAT",
    "VERBOSE",
    "LAYOUT_DEFAULT_PROFILE",
    "LAYOUT_BATCH_WORKERS",
    "LAYOUT_CHECK_UNIONS",
)

DOCUMENT = {
    "profile": "lp64",
    "aggregates": [
        {
            "name": "foo",
            "members": [
                {"name": "c", "type": "char"},
                {"name": "p", "type": "char*"},
                {"name": "x", "type": "short"},
            ],
        },
        {"name": "broken", "members": [{"name": "w", "type": "widget"}]},
        {
            "name": "flags",
            "members": [
                {"name": "flip", "type": "unsigned int", "bits": 1},
                {"name": "nybble", "type": "unsigned int", "bits": 4},
            ],
        },
    ],
}


@pytest.fixture(autouse=True)
def isolated_run(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clean_logging: None) -> None:
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


def run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParseArgs:
    """Command line parsing."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        args = parse_args(["structs.json"])
        assert args.input == Path("structs.json")
        assert args.profile is None
        assert not args.repack
        assert args.format is None

    @pytest.mark.unit
    def test_options(self) -> None:
        args = parse_args(
            ["x.elf", "-p", "i386", "--preserve-groups", "--symbols", "a,b", "--format", "json", "-o", "out", "-v"]
        )
        assert args.profile == "i386"
        assert args.preserve_groups
        assert args.symbols == "a,b"
        assert args.format == "json"
        assert args.output == Path("out")
        assert args.verbose


class TestMain:
    """Runs of the whole tool."""

    @pytest.mark.unit
    def test_json_report_to_stdout(self, description_file, capsys: pytest.CaptureFixture) -> None:
        path = description_file(DOCUMENT)

        assert run([str(path), "--repack", "--format", "json"]) == 1

        reports = json.loads(capsys.readouterr().out)
        by_name = {report["name"]: report for report in reports}
        assert by_name["foo"]["total_size"] == 24
        assert by_name["foo"]["repack"]["savings"] == 8
        assert by_name["flags"]["total_size"] == 4
        assert by_name["broken"]["error"] == "UnknownType"
        assert by_name["broken"]["member"] == "w"

    @pytest.mark.unit
    def test_text_report(self, description_file, capsys: pytest.CaptureFixture) -> None:
        path = description_file(DOCUMENT)
        assert run([str(path), "--symbols", "foo,flags"]) == 0

        out = capsys.readouterr().out
        assert "struct foo {" in out
        assert "struct flags {" in out
        assert "broken" not in out

    @pytest.mark.unit
    def test_profile_flag_overrides_document(self, description_file, capsys: pytest.CaptureFixture) -> None:
        path = description_file(DOCUMENT)
        assert run([str(path), "--symbols", "foo", "-p", "i386", "--format", "json"]) == 0

        (report,) = json.loads(capsys.readouterr().out)
        assert report["total_size"] == 12

    @pytest.mark.unit
    def test_default_profile_from_engine_config(
        self, description_file, capsys: pytest.CaptureFixture, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        document = {key: value for key, value in DOCUMENT.items() if key != "profile"}
        path = description_file(document)
        monkeypatch.setenv("LAYOUT_DEFAULT_PROFILE", "ilp32")

        assert run([str(path), "--symbols", "foo", "--format", "json"]) == 0
        (report,) = json.loads(capsys.readouterr().out)
        assert report["total_size"] == 12

    @pytest.mark.unit
    def test_reports_to_directory(self, description_file, tmp_path: Path) -> None:
        path = description_file(DOCUMENT)
        output_dir = tmp_path / "reports"

        assert run([str(path), "--symbols", "foo,flags", "-o", str(output_dir), "--format", "json"]) == 0

        assert sorted(p.name for p in output_dir.iterdir()) == ["flags.json", "foo.json"]
        assert json.loads((output_dir / "foo.json").read_text(encoding="utf-8"))["total_size"] == 24

    @pytest.mark.unit
    def test_rejected_aggregate_fails_run(self, description_file, capsys: pytest.CaptureFixture) -> None:
        document = {"aggregates": [DOCUMENT["aggregates"][0], {"name": "bad", "members": [{"name": "a"}]}]}
        path = description_file(document)

        assert run([str(path), "--format", "json"]) == 1
        names = [report["name"] for report in json.loads(capsys.readouterr().out)]
        assert names == ["foo", "bad"]

    @pytest.mark.unit
    def test_missing_input(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        assert run([str(tmp_path / "missing.json")]) == 1
        assert "Configuration error" in capsys.readouterr().err

    @pytest.mark.unit
    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert run([str(path)]) == 1

    @pytest.mark.unit
    def test_unknown_profile(self, description_file) -> None:
        path = description_file(DOCUMENT)
        assert run([str(path), "-p", "pdp11"]) == 1

    @pytest.mark.unit
    def test_nothing_to_process(self, description_file) -> None:
        path = description_file({"aggregates": []})
        assert run([str(path)]) == 1
