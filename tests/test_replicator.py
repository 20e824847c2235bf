"""Tests for replicating a source tree into per-locale trees."""

import json

import pytest

from localizer.configuration import ProjectConfig
from localizer.context import LocaleContextType
from localizer.errors import ErrorCategory, ProjectConfigurationError
from localizer.replicator import FileReplicator
from localizer.translator import Translator


@pytest.fixture
def project_dir(tmp_path):
    source = tmp_path / "src"
    (source / "docs").mkdir(parents=True)
    (source / "en.json").write_text(
        json.dumps({"greeting": "hello", "nested": {"farewell": "bye"}}), encoding="utf-8"
    )
    (source / "docs" / "guide.md").write_text("# Guide\n\nRead this.\n", encoding="utf-8")
    (source / "skip.py").write_text("print('untouched')\n", encoding="utf-8")
    return tmp_path


def make_project(base_dir, **overrides):
    values = {
        "source": "src",
        "file_types": [".json", ".md"],
        "locales": ["fr", "de"],
        "source_locale": "en",
        "destination": "out",
        "base_dir": base_dir,
    }
    values.update(overrides)
    return ProjectConfig(**values)


class TestDiscovery:

    def test_only_configured_file_types_are_found(self, project_dir, scripted_provider):
        replicator = FileReplicator(Translator(scripted_provider), make_project(project_dir))

        assert [path.as_posix() for path in replicator.discover()] == [
            "docs/guide.md",
            "en.json",
        ]

    def test_missing_source_directory(self, tmp_path, scripted_provider):
        replicator = FileReplicator(Translator(scripted_provider), make_project(tmp_path))

        with pytest.raises(ProjectConfigurationError):
            replicator.discover()

    def test_output_mirrors_the_source_layout(self, project_dir, scripted_provider):
        from pathlib import Path

        replicator = FileReplicator(Translator(scripted_provider), make_project(project_dir))

        assert replicator.output_path("fr", Path("docs/guide.md")) == (
            (project_dir / "out").resolve() / "fr" / "docs" / "guide.md"
        )


class TestRun:

    @pytest.mark.asyncio
    async def test_every_file_is_written_for_every_locale(self, project_dir, scripted_provider):
        replicator = FileReplicator(
            Translator(scripted_provider, max_retries=0), make_project(project_dir)
        )

        summary = await replicator.run()

        out = project_dir / "out"
        for locale in ("fr", "de"):
            document = (out / locale / "en.json").read_text(encoding="utf-8")
            assert document == json.dumps(
                {"greeting": "HELLO", "nested": {"farewell": "BYE"}},
                indent=2,
                ensure_ascii=False,
            )
            guide = (out / locale / "docs" / "guide.md").read_text(encoding="utf-8")
            assert guide == "# GUIDE\n\nREAD THIS.\n"
            assert not (out / locale / "skip.py").exists()

        assert summary.total_files == 2
        assert summary.failed_locales == []
        assert summary.total_errors == 0
        assert summary.provider_name == "scripted"
        assert set(summary.locales["fr"].written) == {
            (out / "fr" / "en.json").resolve(),
            (out / "fr" / "docs" / "guide.md").resolve(),
        }

    @pytest.mark.asyncio
    async def test_locale_subset(self, project_dir, scripted_provider):
        replicator = FileReplicator(
            Translator(scripted_provider, max_retries=0), make_project(project_dir)
        )

        summary = await replicator.run(["de"])

        assert list(summary.locales) == ["de"]
        assert not (project_dir / "out" / "fr").exists()

    @pytest.mark.asyncio
    async def test_broken_file_does_not_stop_other_files(self, project_dir, scripted_provider):
        (project_dir / "src" / "bad.json").write_text("{not json", encoding="utf-8")
        translator = Translator(scripted_provider, max_retries=0)
        replicator = FileReplicator(translator, make_project(project_dir))

        summary = await replicator.run()

        assert summary.failed_locales == ["fr", "de"]
        assert (project_dir / "out" / "fr" / "en.json").exists()
        assert not (project_dir / "out" / "fr" / "bad.json").exists()
        assert translator.error_policy.count(ErrorCategory.SERIALIZATION) == 2
        assert all("bad.json" in failure for failure in summary.locales["de"].failures)

    @pytest.mark.asyncio
    async def test_file_context_reaches_the_prompt(self, project_dir, scripted_provider):
        project = make_project(
            project_dir,
            locales=["fr"],
            locale_context={"docs/guide.md": "User guide for admins"},
        )
        replicator = FileReplicator(Translator(scripted_provider, max_retries=0), project)

        await replicator.run()

        guide_prompts = [
            prompt
            for text, prompt in zip(scripted_provider.calls, scripted_provider.system_prompts)
            if text == "Read this."
        ]
        assert "User guide for admins" in guide_prompts[0]

    @pytest.mark.asyncio
    async def test_deep_context_reaches_json_leaves(self, project_dir, scripted_provider):
        project = make_project(
            project_dir,
            locales=["fr"],
            context_type=LocaleContextType.DEEP,
            locale_context={
                "en.json": {"greeting": "Homepage greeting", "$fileContext": "App strings"}
            },
        )
        replicator = FileReplicator(Translator(scripted_provider, max_retries=0), project)

        await replicator.run()

        prompts = dict(zip(scripted_provider.calls, scripted_provider.system_prompts))
        assert "Homepage greeting" in prompts["hello"]
        assert "App strings" in prompts["bye"]

    @pytest.mark.asyncio
    async def test_undecodable_file_does_not_stop_other_files(self, project_dir, scripted_provider):
        (project_dir / "src" / "legacy.md").write_bytes("Café crème\n".encode("latin-1"))
        translator = Translator(scripted_provider, max_retries=0)
        replicator = FileReplicator(translator, make_project(project_dir))

        summary = await replicator.run()

        assert summary.failed_locales == ["fr", "de"]
        assert (project_dir / "out" / "de" / "docs" / "guide.md").exists()
        assert not (project_dir / "out" / "fr" / "legacy.md").exists()
        assert translator.error_policy.count(ErrorCategory.FILE_IO) == 2
        assert all("legacy.md" in failure for failure in summary.locales["fr"].failures)
