from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
import os
import json
import shlex

try:
    import tomllib  # PY>=3.11
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore

from .archive import Archiver, CommandArchiver, TarArchiver
from .cache import ArtifactCache
from .environment import Environment
from .index import TaskclusterIndex
from .queue import TaskclusterQueue
from .storage import DEFAULT_CACHE_NAME, PathResolver
from .tc_client import PROXY_ROOT_URL, TaskclusterClient
from .transfer import DOWNLOAD_ATTEMPTS, UPLOAD_ATTEMPTS, CommandTransferer, HTTPTransferer, RetryingTransferer, Transferer

ENV_PREFIX = "VCSCACHE_"


@dataclass
class CacheConfig:
    cache_dir: str = "~/.tc-vcs"
    cache_name: str = DEFAULT_CACHE_NAME
    root_url: str = field(default_factory=lambda: os.getenv("TASKCLUSTER_ROOT_URL", PROXY_ROOT_URL))
    token: str = ""
    timeout: int = 300
    get: List[str] = field(default_factory=list)
    upload_tar: List[str] = field(default_factory=list)
    extract: List[str] = field(default_factory=list)
    compress: List[str] = field(default_factory=list)
    download_attempts: int = DOWNLOAD_ATTEMPTS
    upload_attempts: int = UPLOAD_ATTEMPTS
    retry_wait: float = 0

    @staticmethod
    def from_mapping(data: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        env = os.environ if environ is None else environ
        defaults = CacheConfig()
        def env_override(key: str, default):
            raw = env.get(f"{ENV_PREFIX}{key.upper()}")
            if raw is None:
                return data.get(key, default)
            if isinstance(default, list):
                return shlex.split(raw)
            return raw
        def argv(key: str) -> List[str]:
            val = env_override(key, [])
            return shlex.split(val) if isinstance(val, str) else list(val)
        return CacheConfig(
            cache_dir=str(env_override("cache_dir", defaults.cache_dir)),
            cache_name=str(env_override("cache_name", defaults.cache_name)),
            root_url=str(env_override("root_url", env.get("TASKCLUSTER_ROOT_URL", PROXY_ROOT_URL))).rstrip("/"),
            token=str(env_override("token", "")),
            timeout=int(env_override("timeout", defaults.timeout)),
            get=argv("get"),
            upload_tar=argv("upload_tar"),
            extract=argv("extract"),
            compress=argv("compress"),
            download_attempts=int(env_override("download_attempts", DOWNLOAD_ATTEMPTS)),
            upload_attempts=int(env_override("upload_attempts", UPLOAD_ATTEMPTS)),
            retry_wait=float(env_override("retry_wait", 0)),
        )

    @staticmethod
    def from_toml(path: str, environ: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        with open(path, "rb") as f:
            data = tomllib.load(f)
        # allow a [cache] table or top level keys
        return CacheConfig.from_mapping(data.get("cache", data), environ)

    @staticmethod
    def from_json(path: str, environ: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return CacheConfig.from_mapping(data.get("cache", data), environ)

    @staticmethod
    def from_file(path: str, environ: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        if path.lower().endswith(".json"):
            return CacheConfig.from_json(path, environ)
        return CacheConfig.from_toml(path, environ)

    def validate(self) -> None:
        bad = [k for k in ["cache_dir", "cache_name", "root_url"] if not getattr(self, k)]
        bad += [k for k in ["download_attempts", "upload_attempts", "timeout"] if getattr(self, k) < 1]
        if "{name}" not in self.cache_name:
            bad.append("cache_name")
        if bool(self.get) != bool(self.upload_tar):
            bad.append("get/upload_tar")
        if bool(self.extract) != bool(self.compress):
            bad.append("extract/compress")
        if bad:
            raise SystemExit(f"Config has invalid keys: {', '.join(bad)}")

    def transferer(self) -> Transferer:
        if self.get:
            inner: Transferer = CommandTransferer(self.get, self.upload_tar)
        else:
            inner = HTTPTransferer(timeout=self.timeout)
        return RetryingTransferer(inner, self.download_attempts, self.upload_attempts, wait=self.retry_wait)

    def archiver(self) -> Archiver:
        if self.extract:
            return CommandArchiver(self.extract, self.compress)
        return TarArchiver()


def build_cache(cfg: CacheConfig, environ: Optional[Mapping[str, str]] = None) -> ArtifactCache:
    env: Dict[str, str] = dict(os.environ if environ is None else environ)
    client = TaskclusterClient(root_url=cfg.root_url, token=cfg.token, timeout=cfg.timeout)
    queue = TaskclusterQueue(client)
    return ArtifactCache(
        resolver=PathResolver.from_templates(cfg.cache_dir, cfg.cache_name, env),
        index=TaskclusterIndex(client, queue),
        queue=queue,
        transferer=cfg.transferer(),
        archiver=cfg.archiver(),
        env=Environment.from_environ(env),
    )
