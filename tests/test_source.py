"""Tests for template acquisition (kickstart.source).

Tests cover:
- get_source classification of local paths, archive URLs and git remotes
- clone_repository (mocked git) success and failures
- download_archive through an httpx.MockTransport (tar.gz and zip)
- extract_archive path-traversal protection
- Template.from_local / Template.from_input, including ``directory``
"""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from kickstart.config import Config
from kickstart.errors import AcquisitionError, SchemaError
from kickstart.source import (
    SourceKind,
    Template,
    clone_repository,
    download_archive,
    extract_archive,
    get_source,
)

from tests.conftest import write_template

MINIMAL_TOML = 'name = "Remote"\nkickstart_version = 1\n'


def _tar_gz(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _zip(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _serving(payload: bytes, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=payload)

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# get_source
# ---------------------------------------------------------------------------


class TestGetSource:
    @pytest.mark.unit
    def test_local_directory(self, tmp_path):
        source = get_source(str(tmp_path))
        assert source.kind is SourceKind.LOCAL

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/tpl.zip",
            "https://example.com/tpl.tar.gz",
            "http://example.com/TPL.TGZ",
        ],
    )
    def test_archive_urls(self, url):
        assert get_source(url).kind is SourceKind.ARCHIVE

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "reference",
        [
            "https://github.com/me/template",
            "git@github.com:me/template.git",
            "/definitely/not/here",
        ],
    )
    def test_everything_else_is_git(self, reference):
        assert get_source(reference).kind is SourceKind.GIT


# ---------------------------------------------------------------------------
# git
# ---------------------------------------------------------------------------


class TestCloneRepository:
    @pytest.mark.asyncio
    async def test_clone_command(self, mock_git_clone, tmp_path):
        with mock_git_clone as run:
            result = await clone_repository("https://github.com/me/t", tmp_path / "t", timeout=30)
        assert result == tmp_path / "t"
        cmd = run.await_args.args[0]
        assert cmd[:2] == ["git", "clone"]
        assert "--recurse-submodules" in cmd
        assert cmd[-2:] == ["https://github.com/me/t", str(tmp_path / "t")]
        assert run.await_args.kwargs["timeout"] == 30

    @pytest.mark.asyncio
    async def test_clone_failure(self, tmp_path):
        failing = AsyncMock(return_value=(128, "", "fatal: repository not found"))
        with patch("kickstart.source.run_command", new=failing):
            with pytest.raises(AcquisitionError) as exc_info:
                await clone_repository("https://github.com/me/missing", tmp_path / "t")
        assert exc_info.value.stderr == "fatal: repository not found"
        assert "git clone" in exc_info.value.command

    @pytest.mark.asyncio
    async def test_git_not_installed(self, tmp_path):
        missing = AsyncMock(side_effect=FileNotFoundError("git"))
        with patch("kickstart.source.run_command", new=missing):
            with pytest.raises(AcquisitionError, match="git is not installed"):
                await clone_repository("https://github.com/me/t", tmp_path / "t")


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


class TestDownloadArchive:
    @pytest.mark.asyncio
    async def test_tar_gz_single_root_unwrapped(self, tmp_path):
        payload = _tar_gz(
            {"tpl-main/template.toml": MINIMAL_TOML, "tpl-main/{{ name }}.txt": "hi"}
        )
        root = await download_archive(
            "https://example.com/tpl.tar.gz", tmp_path / "template", transport=_serving(payload)
        )
        assert root == tmp_path / "template" / "tpl-main"
        assert (root / "template.toml").read_text() == MINIMAL_TOML
        assert not (tmp_path / "template-tpl.tar.gz").exists()

    @pytest.mark.asyncio
    async def test_zip_flat(self, tmp_path):
        payload = _zip({"template.toml": MINIMAL_TOML, "a.txt": "a"})
        root = await download_archive(
            "https://example.com/tpl.zip", tmp_path / "template", transport=_serving(payload)
        )
        assert root == tmp_path / "template"
        assert (root / "a.txt").read_text() == "a"

    @pytest.mark.asyncio
    async def test_http_error(self, tmp_path):
        with pytest.raises(AcquisitionError, match="HTTP 404"):
            await download_archive(
                "https://example.com/tpl.zip", tmp_path / "template", transport=_serving(b"", 404)
            )

    @pytest.mark.asyncio
    async def test_connection_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AcquisitionError, match="connection refused"):
            await download_archive(
                "https://example.com/tpl.zip",
                tmp_path / "template",
                transport=httpx.MockTransport(handler),
            )

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, tmp_path):
        with pytest.raises(AcquisitionError, match="Could not extract"):
            await download_archive(
                "https://example.com/tpl.zip",
                tmp_path / "template",
                transport=_serving(b"not a zip"),
            )


class TestExtractArchive:
    @pytest.mark.unit
    def test_zip_traversal_refused(self, tmp_path):
        archive = tmp_path / "evil.zip"
        archive.write_bytes(_zip({"../evil.txt": "x"}))
        with pytest.raises(AcquisitionError, match="escapes the target"):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()

    @pytest.mark.unit
    def test_tar_traversal_refused(self, tmp_path):
        archive = tmp_path / "evil.tar.gz"
        archive.write_bytes(_tar_gz({"../evil.txt": "x"}))
        with pytest.raises(AcquisitionError):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


class TestTemplate:
    @pytest.mark.unit
    def test_from_local(self, sample_template):
        template = Template.from_local(sample_template)
        assert template.definition.name == "Sample"
        assert template.template_root == sample_template.resolve()
        assert template.schema_path == sample_template.resolve() / "template.toml"

    @pytest.mark.unit
    def test_missing_schema(self, tmp_path):
        with pytest.raises(SchemaError, match="template.toml is missing"):
            Template.from_local(tmp_path)

    @pytest.mark.unit
    def test_sub_directory_argument(self, tmp_path):
        write_template(tmp_path / "repo" / "python", MINIMAL_TOML, {"a.txt": "a"})
        template = Template.from_local(tmp_path / "repo", directory="python")
        assert template.root == (tmp_path / "repo" / "python").resolve()

    @pytest.mark.unit
    def test_definition_directory(self, tmp_path):
        root = write_template(
            tmp_path / "tpl",
            MINIMAL_TOML + 'directory = "files"\n',
            {"files/{{ x }}.txt": "x"},
        )
        template = Template.from_local(root)
        assert template.template_root == root.resolve() / "files"

    @pytest.mark.unit
    def test_definition_directory_missing(self, tmp_path):
        root = write_template(tmp_path / "tpl", MINIMAL_TOML + 'directory = "files"\n', {})
        with pytest.raises(SchemaError, match="does not exist"):
            Template.from_local(root)

    @pytest.mark.asyncio
    async def test_from_input_local(self, sample_template, tmp_path):
        template = await Template.from_input(str(sample_template), workdir=tmp_path)
        assert template.definition.name == "Sample"

    @pytest.mark.asyncio
    async def test_from_input_git(self, tmp_path):
        async def fake_clone(cmd, timeout):
            write_template(Path(cmd[-1]), MINIMAL_TOML, {"README.md": "# {{ x }}"})
            return 0, "", ""

        workdir = tmp_path / "work"
        workdir.mkdir()
        with patch("kickstart.source.run_command", new=AsyncMock(side_effect=fake_clone)) as run:
            template = await Template.from_input(
                "https://github.com/me/t", workdir=workdir, config=Config(clone_timeout=42)
            )
        assert template.definition.name == "Remote"
        assert template.root == (workdir / "template").resolve()
        assert run.await_args.kwargs["timeout"] == 42

    @pytest.mark.asyncio
    async def test_from_input_archive(self, tmp_path):
        fake_download = AsyncMock(
            side_effect=lambda url, target, timeout: write_template(target, MINIMAL_TOML, {})
        )
        with patch("kickstart.source.download_archive", new=fake_download):
            template = await Template.from_input(
                "https://example.com/tpl.tar.gz", workdir=tmp_path
            )
        assert template.definition.name == "Remote"
        assert fake_download.await_args.kwargs["timeout"] == 60
