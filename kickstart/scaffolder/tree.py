"""Rendering of a template directory tree.

Walks the template files depth-first (sorted, parents before children),
renders every relative path against the context, and writes each file either
rendered or byte-for-byte.  Symbolic links are recreated as links and never
followed.  Output goes to a staging directory first and is only moved to the
real destination once the whole tree rendered, so a failed run never leaves a
half-written project behind.

A rendered file that contains any ``\\r\\n`` is written with ``\\r\\n``
throughout, otherwise with ``\\n``; files copied verbatim are untouched.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Iterator, Mapping

from kickstart.errors import DestinationConflictError, GenerationIOError, RenderError
from kickstart.schema.models import TEMPLATE_FILE_NAME
from kickstart.templates import TemplateRenderer
from kickstart.utils import is_binary

ALWAYS_IGNORED_DIRS = frozenset({".git"})


@dataclass(frozen=True)
class TemplateNode:
    """One entry of the template tree, alive only during a single walk."""

    source: Path
    relative: str
    is_dir: bool
    is_link: bool = False


# ---------------------------------------------------------------------------
# TreeRenderer
# ---------------------------------------------------------------------------


class TreeRenderer:
    """Renders a template tree into an output directory.

    Args:
        template_root: Directory whose content becomes the generated project.
        renderer: Template engine wrapper.
        base: Directory that relative paths are taken from, so a template's
            ``directory`` sub-root stays part of the output paths.  Defaults
            to *template_root*.
        ignore: Glob patterns (or plain prefixes) of source paths to skip,
            relative to *base*.
        copy_without_render: Glob patterns, matched against the *rendered*
            relative path, of files copied verbatim.
        schema_path: The ``template.toml`` to exclude; defaults to the one at
            *template_root*.
        exclude: Extra absolute paths never to descend into (the destination
            when it lives inside the template, for instance).
    """

    def __init__(
        self,
        template_root: str | Path,
        renderer: TemplateRenderer | None = None,
        *,
        base: str | Path | None = None,
        ignore: Iterable[str] = (),
        copy_without_render: Iterable[str] = (),
        schema_path: str | Path | None = None,
        exclude: Iterable[str | Path] = (),
    ) -> None:
        self.template_root = Path(template_root).resolve()
        self.base = Path(base).resolve() if base else self.template_root
        if not self.template_root.is_relative_to(self.base):
            raise ValueError(f"{self.template_root} is not inside {self.base}")
        self.renderer = renderer or TemplateRenderer()
        self.ignore = list(ignore)
        self.copy_without_render = list(copy_without_render)
        self.schema_path = (
            Path(schema_path).resolve() if schema_path else self.base / TEMPLATE_FILE_NAME
        )
        self.exclude = [Path(p).resolve() for p in exclude]

    # -- Walking -----------------------------------------------------------

    def iter_nodes(self) -> Iterator[TemplateNode]:
        """Yield every entry to render, pruning ignored directories.

        When *base* sits above *template_root*, the sub-root itself comes
        first so it is recreated in the output.
        """
        if self.template_root != self.base:
            yield TemplateNode(
                source=self.template_root,
                relative=self.template_root.relative_to(self.base).as_posix(),
                is_dir=True,
            )
        yield from self._walk(self.template_root)

    def _walk(self, directory: Path) -> Iterator[TemplateNode]:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            relative = entry.relative_to(self.base).as_posix()
            is_link = entry.is_symlink()
            is_dir = entry.is_dir() and not is_link
            if self._is_skipped(entry, relative, is_dir):
                continue
            yield TemplateNode(source=entry, relative=relative, is_dir=is_dir, is_link=is_link)
            if is_dir:
                yield from self._walk(entry)

    def _is_skipped(self, entry: Path, relative: str, is_dir: bool) -> bool:
        if is_dir and entry.name in ALWAYS_IGNORED_DIRS:
            return True
        # Links are never followed, so entry is already canonical.
        if entry == self.schema_path:
            return True
        if any(entry == ex or entry.is_relative_to(ex) for ex in self.exclude):
            return True
        return matches_ignore(relative, self.ignore)

    # -- Rendering ---------------------------------------------------------

    async def render_tree(self, context: Mapping[str, Any], output_dir: str | Path) -> list[Path]:
        """Render every template entry into *output_dir*.

        Returns:
            Paths of the files written, relative to *output_dir*.

        Raises:
            RenderError: On a template error in a path or content, naming the
                offending source path.
            GenerationIOError: When reading a source or writing an output fails.
        """
        out_base = Path(output_dir)
        no_render = [
            self.renderer.render_string(p, context, path=f"copy_without_render pattern `{p}`")
            for p in self.copy_without_render
        ]

        written: list[Path] = []
        origins: dict[PurePosixPath, str] = {}

        for node in self.iter_nodes():
            target = self.render_relative_path(node, context)
            previous = origins.setdefault(target, node.relative)
            if previous != node.relative and not node.is_dir:
                raise RenderError(
                    node.relative, f"Renders to `{target}`, already produced by `{previous}`"
                )
            output_path = out_base.joinpath(*target.parts)

            if node.is_dir:
                await asyncio.to_thread(_make_dir, output_path)
                continue
            if node.is_link:
                await asyncio.to_thread(_copy_link, node.source, output_path)
                written.append(Path(*target.parts))
                continue

            content = await asyncio.to_thread(_read_bytes, node.source)
            verbatim = is_binary(content) or any(
                fnmatchcase(target.as_posix(), pattern) for pattern in no_render
            )
            if verbatim:
                await asyncio.to_thread(_copy_file, node.source, output_path)
            else:
                rendered = self.renderer.render_string(
                    content.decode("utf-8"),
                    context,
                    path=node.relative,
                    newline="\r\n" if b"\r\n" in content else "\n",
                )
                await asyncio.to_thread(_write_file, output_path, rendered, node.source)
            written.append(Path(*target.parts))

        return written

    def render_relative_path(self, node: TemplateNode, context: Mapping[str, Any]) -> PurePosixPath:
        """Render a node's relative path, refusing anything outside the output root."""
        rendered = self.renderer.render_path(node.relative, context)
        target = PurePosixPath(rendered)
        if not target.parts or target.is_absolute() or ".." in target.parts:
            raise RenderError(
                node.relative,
                f"Path renders to `{rendered}`, which is not a path inside the destination",
            )
        return target


def matches_ignore(relative: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` if *relative* is an ignored path or lies under one."""
    for pattern in patterns:
        prefix = pattern.strip("/")
        if relative == prefix or relative.startswith(prefix + "/"):
            return True
        if fnmatchcase(relative, pattern):
            return True
    return False


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------


class StagingArea:
    """Temporary output directory committed to the destination on success.

    Created as a hidden child of the destination, so only the destination
    needs to be writable and the final move is a rename on the same
    filesystem.  Use as a context manager; the staging directory is removed
    on exit whether or not it was committed, and so is the destination when
    this run created it and nothing was committed into it.
    """

    PREFIX = ".kickstart-staging-"

    def __init__(self, destination: str | Path) -> None:
        self.destination = Path(destination).resolve()
        self.path: Path | None = None
        self._created_destination = False

    def __enter__(self) -> Path:
        self._created_destination = not self.destination.exists()
        try:
            self.destination.mkdir(parents=True, exist_ok=True)
            self.path = Path(tempfile.mkdtemp(prefix=self.PREFIX, dir=self.destination))
        except OSError as exc:
            raise GenerationIOError(
                self.destination, f"Could not create staging directory ({exc})"
            ) from exc
        return self.path

    def __exit__(self, *exc_info: object) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            self.path = None
        if self._created_destination and not any(self.destination.iterdir()):
            self.destination.rmdir()

    def commit(self) -> list[Path]:
        """Move every top-level staged entry into the destination.

        Raises:
            DestinationConflictError: If any of them already exists there;
                nothing is moved in that case.
            GenerationIOError: If a move fails.
        """
        if self.path is None:
            raise RuntimeError("StagingArea.commit() called outside of its context")

        entries = sorted(self.path.iterdir(), key=lambda p: p.name)
        conflicts = [e.name for e in entries if os.path.lexists(self.destination / e.name)]
        if conflicts:
            raise DestinationConflictError(self.destination, conflicts)

        moved: list[Path] = []
        for entry in entries:
            target = self.destination / entry.name
            try:
                shutil.move(str(entry), str(target))
            except OSError as exc:
                raise GenerationIOError(target, f"Could not move generated entry ({exc})") from exc
            moved.append(target)
        return moved


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise GenerationIOError(path, f"Could not read template file ({exc})") from exc


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise GenerationIOError(path, f"Could not create directory ({exc})") from exc


def _write_file(path: Path, content: str, source: Path) -> None:
    """Synchronous helper: create parent dirs, write content, keep permissions."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8", newline="")
        shutil.copymode(source, path)
    except OSError as exc:
        raise GenerationIOError(path, f"Could not write file ({exc})") from exc


def _copy_file(source: Path, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(source, path)
    except OSError as exc:
        raise GenerationIOError(path, f"Could not copy file ({exc})") from exc


def _copy_link(source: Path, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(os.readlink(source), path)
    except OSError as exc:
        raise GenerationIOError(path, f"Could not copy symbolic link ({exc})") from exc
