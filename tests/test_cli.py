"""Tests for the command line entry points."""

import json
from pathlib import Path

import pytest

from localizer.cli import build_parser, derive_output_path, main, sanitise_locale_for_filename, split_list
from localizer.configuration import PROJECT_FILE_NAME


class TestHelpers:

    def test_split_list(self):
        assert split_list(" es, fr ,,de ") == ["es", "fr", "de"]
        assert split_list(None) == []

    @pytest.mark.parametrize(
        "locale, expected",
        [("pt BR", "pt-BR"), ("fr", "fr"), ("日本語", "translated")],
    )
    def test_locale_suffix(self, locale, expected):
        assert sanitise_locale_for_filename(locale) == expected

    def test_derive_output_path(self):
        assert derive_output_path(Path("docs/notes.md"), "es") == Path("docs/notes_es.md")

    def test_dispatch_flags(self):
        args = build_parser().parse_args(["file", "a.md", "-t", "fr", "--queued"])

        assert args.dispatch_mode == "queued"
        assert args.source_locale == "en"

    def test_a_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestFileCommand:

    def test_translates_next_to_the_input(self, tmp_path, capsys):
        source = tmp_path / "notes.md"
        source.write_text("# Notes\n\n- one\n- two\n", encoding="utf-8")

        exit_code = main(["file", str(source), "-t", "fr", "-p", "echo"])

        assert exit_code == 0
        assert (tmp_path / "notes_fr.md").read_text(encoding="utf-8") == "# Notes\n\n- one\n- two\n"
        assert "Translation complete." in capsys.readouterr().out

    def test_json_file_keeps_its_structure(self, tmp_path):
        source = tmp_path / "en.json"
        source.write_text(json.dumps({"a": ["b", 1]}), encoding="utf-8")
        target = tmp_path / "fr.json"

        exit_code = main(["file", str(source), "-t", "fr", "-o", str(target), "-p", "echo"])

        assert exit_code == 0
        assert json.loads(target.read_text(encoding="utf-8")) == {"a": ["b", 1]}

    def test_refuses_to_overwrite_without_force(self, tmp_path, capsys):
        source = tmp_path / "notes.txt"
        source.write_text("Hello", encoding="utf-8")
        (tmp_path / "notes_fr.txt").write_text("old", encoding="utf-8")

        assert main(["file", str(source), "-t", "fr", "-p", "echo"]) == 1
        assert "already exists" in capsys.readouterr().out
        assert main(["file", str(source), "-t", "fr", "-p", "echo", "--force"]) == 0

    def test_missing_input(self, tmp_path, capsys):
        assert main(["file", str(tmp_path / "missing.txt"), "-t", "fr", "-p", "echo"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_undecodable_input(self, tmp_path, capsys):
        source = tmp_path / "legacy.txt"
        source.write_bytes("Caf\u00e9 cr\u00e8me".encode("latin-1"))

        assert main(["file", str(source), "-t", "fr", "-p", "echo"]) == 1
        assert "is not UTF-8 encoded text" in capsys.readouterr().out
        assert not (tmp_path / "legacy_fr.txt").exists()


class TestProjectCommands:

    def init(self, tmp_path, *extra):
        config = tmp_path / PROJECT_FILE_NAME
        return config, main(
            [
                "init",
                "--source",
                "src",
                "--locales",
                "ES,fr",
                "--file-types",
                "json,md",
                "--destination",
                "out",
                "--config",
                str(config),
                *extra,
            ]
        )

    @pytest.fixture
    def source_tree(self, tmp_path):
        source = tmp_path / "src"
        source.mkdir()
        (source / "en.json").write_text(json.dumps({"title": "Hello"}), encoding="utf-8")
        (source / "readme.md").write_text("Welcome.\n", encoding="utf-8")
        return source

    def test_init_writes_project_file(self, tmp_path, source_tree):
        config, exit_code = self.init(tmp_path, "--context-type", "deep")

        assert exit_code == 0
        data = json.loads(config.read_text(encoding="utf-8"))
        assert data["locales"] == ["es", "fr"]
        assert data["fileTypes"] == [".json", ".md"]
        assert data["from"] == "en"
        assert data["localeContextType"] == "deep"
        assert data["localeContext"] == {
            "en.json": {"title": "", "$fileContext": ""},
            "readme.md": "",
        }
        assert (tmp_path / "out").is_dir()

    def test_init_does_not_overwrite(self, tmp_path, source_tree, capsys):
        self.init(tmp_path)

        _, exit_code = self.init(tmp_path)

        assert exit_code == 1
        assert "already exists" in capsys.readouterr().out

    def test_init_needs_an_existing_source(self, tmp_path):
        _, exit_code = self.init(tmp_path)

        assert exit_code == 1

    def test_translate_writes_locale_trees(self, tmp_path, source_tree, capsys):
        config, _ = self.init(tmp_path)

        exit_code = main(["translate", "--config", str(config), "-p", "echo"])

        assert exit_code == 0
        for locale in ("es", "fr"):
            assert json.loads((tmp_path / "out" / locale / "en.json").read_text(encoding="utf-8")) == {
                "title": "Hello"
            }
            assert (tmp_path / "out" / locale / "readme.md").read_text(encoding="utf-8") == "Welcome.\n"
        output = capsys.readouterr().out
        assert "[ok] es: 2 files written" in output

    def test_translate_uses_project_file_in_working_directory(
        self, tmp_path, source_tree, monkeypatch
    ):
        self.init(tmp_path)
        monkeypatch.chdir(tmp_path)

        assert main(["translate", "--locales", "fr", "-p", "echo"]) == 0
        assert (tmp_path / "out" / "fr" / "en.json").exists()
        assert not (tmp_path / "out" / "es").exists()

    def test_translate_uses_the_project_provider(self, tmp_path, source_tree):
        config, _ = self.init(tmp_path)
        data = json.loads(config.read_text(encoding="utf-8"))
        data["aiServiceProvider"] = "mock"
        config.write_text(json.dumps(data), encoding="utf-8")

        assert main(["translate", "--config", str(config)]) == 0
        assert (tmp_path / "out" / "es" / "readme.md").read_text(encoding="utf-8") == "Welcome.\n"

    def test_translate_rejects_unknown_locales(self, tmp_path, source_tree, capsys):
        config, _ = self.init(tmp_path)

        assert main(["translate", "--config", str(config), "--locales", "it", "-p", "echo"]) == 1
        assert "Locales not configured in the project file: it" in capsys.readouterr().out

    def test_translate_without_project_file(self, tmp_path, capsys):
        exit_code = main(["translate", "--config", str(tmp_path / PROJECT_FILE_NAME), "-p", "echo"])

        assert exit_code == 1
        assert "localizer init" in capsys.readouterr().out
