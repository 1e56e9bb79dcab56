from __future__ import annotations
import os, logging, tarfile, zlib
from typing import List, Protocol, Sequence
from .errors import CommandError, ExtractionError, PreconditionError
from .process import render_argv, run_command

log = logging.getLogger(__name__)


class Archiver(Protocol):
    def extract(self, source: str, dest: str) -> None: ...
    def compress(self, files: Sequence[str], cwd: str, dest: str) -> None: ...


class TarArchiver:
    """gzip'd tarballs through the standard library."""

    def extract(self, source: str, dest: str) -> None:
        root = os.path.realpath(dest)
        with tarfile.open(source, "r:*") as tar:
            for member in tar.getmembers():
                target = os.path.realpath(os.path.join(root, member.name))
                if target != root and not target.startswith(root + os.sep):
                    raise ExtractionError(source, f"member {member.name!r} escapes {dest}")
            if hasattr(tarfile, "tar_filter"):
                tar.extractall(root, filter="tar")
            else:
                tar.extractall(root)

    def compress(self, files: Sequence[str], cwd: str, dest: str) -> None:
        partial = dest + ".part"
        try:
            with tarfile.open(partial, "w:gz") as tar:
                for f in files:
                    tar.add(os.path.join(cwd, f), arcname=f)
        except BaseException:
            if os.path.exists(partial):
                os.remove(partial)
            raise
        os.replace(partial, dest)


class CommandArchiver:
    """External tar, e.g. extract=["tar", "-x", "-z", "-f", "{source}", "-C", "{dest}"],
    compress=["tar", "-c", "-z", "-f", "{dest}", "{files}"]. `{files}` must be its own element."""

    def __init__(self, extract: Sequence[str], compress: Sequence[str]) -> None:
        self.extract_argv = list(extract)
        self.compress_argv = list(compress)

    def extract(self, source: str, dest: str) -> None:
        run_command(render_argv(self.extract_argv, source=source, dest=dest))

    def compress(self, files: Sequence[str], cwd: str, dest: str) -> None:
        argv: List[str] = []
        for arg in self.compress_argv:
            if arg == "{files}":
                argv.extend(files)
            else:
                argv.extend(render_argv([arg], dest=dest))
        run_command(argv, cwd=cwd)


def extract(archiver: Archiver, source: str, dest: str) -> None:
    """Expand `source` into `dest`. Every archiver failure comes back as ExtractionError."""
    if not dest:
        raise PreconditionError("must pass dest to extract into")
    os.makedirs(dest, exist_ok=True)
    if not os.path.exists(source):
        raise PreconditionError(f"{source} must exist to extract")
    log.debug("Extracting %s into %s", source, dest)
    try:
        archiver.extract(source, dest)
    except (tarfile.TarError, EOFError, zlib.error, OSError, CommandError) as e:
        raise ExtractionError(source, str(e)) from e


def compress(archiver: Archiver, files: Sequence[str], cwd: str, dest: str) -> None:
    dirname = os.path.dirname(dest)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    for f in files:
        path = os.path.join(cwd, f)
        if not os.path.exists(path):
            raise PreconditionError(f"Missing file in artifact path ({path})")
    log.debug("Compressing %s from %s into %s", list(files), cwd, dest)
    archiver.compress(files, cwd, dest)
