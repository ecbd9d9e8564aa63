"""Template acquisition: turn a template reference into a local directory.

A reference is either an existing local directory, the URL of a ``.zip`` /
``.tar.gz`` archive (downloaded with httpx), or anything else, which is
handed to ``git clone``.

Typical usage::

    with tempfile.TemporaryDirectory() as workdir:
        template = await Template.from_input("https://github.com/me/tpl", workdir=workdir)
        print(template.definition.name)
"""

from __future__ import annotations

import tarfile
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx

from kickstart.config import Config
from kickstart.errors import AcquisitionError, SchemaError
from kickstart.schema.loader import load_definition
from kickstart.schema.models import TEMPLATE_FILE_NAME, TemplateDefinition
from kickstart.utils import console, run_command

ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz")


class SourceKind(str, Enum):
    LOCAL = "local"
    GIT = "git"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class Source:
    kind: SourceKind
    location: str


def get_source(reference: str) -> Source:
    """Classify a template reference.

    A path that does not exist locally is assumed to be a git remote and will
    fail later, at clone time, if it is not one.
    """
    if Path(reference).expanduser().is_dir():
        return Source(SourceKind.LOCAL, reference)
    lowered = reference.lower()
    if lowered.startswith(("http://", "https://")) and lowered.endswith(ARCHIVE_SUFFIXES):
        return Source(SourceKind.ARCHIVE, reference)
    return Source(SourceKind.GIT, reference)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


async def clone_repository(remote: str, target: Path, timeout: int = 300) -> Path:
    """Shallow-clone *remote* (with submodules) into *target*."""
    cmd = ["git", "clone", "--depth", "1", "--recurse-submodules", remote, str(target)]
    console.print(f"[cyan]Cloning[/cyan] [bold]{remote}[/bold]...")
    try:
        code, _stdout, stderr = await run_command(cmd, timeout=timeout)
    except FileNotFoundError as exc:
        raise AcquisitionError(
            "git is not installed or not on PATH", command=" ".join(cmd)
        ) from exc
    if code != 0:
        raise AcquisitionError(
            f"Could not clone the repository {remote} (exit {code}):\n{stderr}",
            command=" ".join(cmd),
            stderr=stderr,
        )
    return target


async def download_archive(
    url: str,
    target: Path,
    timeout: int = 60,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Path:
    """Download and extract a template archive into *target*.

    Returns the extracted root; a single top-level directory is unwrapped, as
    produced by GitHub/GitLab archive downloads.
    """
    target.mkdir(parents=True, exist_ok=True)
    archive_name = url.rstrip("/").rsplit("/", 1)[-1] or "template-archive"
    archive_path = target.parent / f"{target.name}-{archive_name}"

    console.print(f"[cyan]Downloading[/cyan] [bold]{url}[/bold]...")
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
            transport=transport,
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with archive_path.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
    except httpx.HTTPStatusError as exc:
        raise AcquisitionError(
            f"Could not download {url}: HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise AcquisitionError(f"Could not download {url}: {exc}") from exc

    try:
        extract_archive(archive_path, target)
    finally:
        archive_path.unlink(missing_ok=True)
    return _unwrap_single_directory(target)


def extract_archive(archive_path: Path, target: Path) -> None:
    """Extract a zip or tar archive, refusing members that escape *target*."""
    root = target.resolve()
    name = archive_path.name.lower()
    try:
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.namelist():
                    if not (root / member).resolve().is_relative_to(root):
                        raise AcquisitionError(f"Archive member escapes the target: {member}")
                archive.extractall(root)
        else:
            with tarfile.open(archive_path, "r:*") as archive:
                archive.extractall(root, filter="data")
    except (zipfile.BadZipFile, tarfile.TarError) as exc:
        raise AcquisitionError(f"Could not extract {archive_path.name}: {exc}") from exc


def _unwrap_single_directory(path: Path) -> Path:
    entries = list(path.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return path


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


@dataclass
class Template:
    """A template available on the local filesystem.

    Attributes:
        root: Directory holding ``template.toml``.
        definition: The parsed and validated schema.
        schema_path: Path of the ``template.toml`` itself.
    """

    root: Path
    definition: TemplateDefinition
    schema_path: Path

    @property
    def template_root(self) -> Path:
        """Directory whose content is rendered (honours ``directory``)."""
        if self.definition.directory:
            return self.root / self.definition.directory
        return self.root

    @classmethod
    def from_local(
        cls,
        path: str | Path,
        directory: str | None = None,
        template_file: str = TEMPLATE_FILE_NAME,
    ) -> "Template":
        """Load a template from a directory holding ``template.toml``.

        Raises:
            SchemaError: If the schema is missing or invalid, or its
                ``directory`` does not exist.
        """
        root = Path(path).expanduser().resolve()
        if directory:
            root = root / directory
        schema_path = root / template_file
        if not schema_path.is_file():
            raise SchemaError(f"{template_file} is missing", path=schema_path)
        definition = load_definition(schema_path)
        template = cls(root=root, definition=definition, schema_path=schema_path)
        if not template.template_root.is_dir():
            raise SchemaError(
                f"directory `{definition.directory}` does not exist in the template",
                path=schema_path,
            )
        return template

    @classmethod
    async def from_input(
        cls,
        reference: str,
        directory: str | None = None,
        *,
        workdir: str | Path,
        config: Config | None = None,
    ) -> "Template":
        """Load a template from a local path, a git remote or an archive URL.

        Remote templates are fetched into *workdir*, which the caller owns and
        removes once generation is over.
        """
        config = config or Config()
        source = get_source(reference)
        if source.kind is SourceKind.LOCAL:
            return cls.from_local(source.location, directory, config.template_file)

        target = Path(workdir) / "template"
        if source.kind is SourceKind.ARCHIVE:
            local = await download_archive(source.location, target, timeout=config.download_timeout)
        else:
            local = await clone_repository(source.location, target, timeout=config.clone_timeout)
        return cls.from_local(local, directory, config.template_file)
