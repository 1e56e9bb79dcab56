from __future__ import annotations
import os, shutil, string, logging
from typing import Callable, Mapping

log = logging.getLogger(__name__)

DEFAULT_CACHE_NAME = "{name}.tar.gz"


def storage_name(name: str) -> str:
    """Remote object name of an artifact. Wire visible, do not change."""
    return f"public/{name}.tar.gz"


def default_cache_name(name: str) -> str:
    return DEFAULT_CACHE_NAME.format(name=name)


class PathResolver:
    """Maps artifact names to files in the local cache directory.

    `local_path` never touches the filesystem; `exists` and `remove` do.
    """

    def __init__(self, cache_dir: str, cache_name: Callable[[str], str] = default_cache_name) -> None:
        self.cache_dir = cache_dir
        self.cache_name = cache_name

    @staticmethod
    def from_templates(cache_dir: str, cache_name: str, env: Mapping[str, str]) -> "PathResolver":
        root = string.Template(cache_dir).safe_substitute(env)
        if root.startswith("~") and env.get("HOME"):
            root = env["HOME"] + root[1:]
        # only the injected env is consulted for ~, never the process HOME
        return PathResolver(root, lambda name: cache_name.format(name=name))

    def local_path(self, name: str) -> str:
        return os.path.join(self.cache_dir, self.cache_name(name))

    def exists(self, name: str) -> bool:
        return os.path.isfile(self.local_path(name))

    def remove(self, name: str) -> None:
        path = self.local_path(name)
        if os.path.exists(path):
            log.debug("Removing cached artifact %s", path)
            os.remove(path)


def remove_tree(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)
