from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol, Sequence
from . import archive
from .archive import Archiver
from .environment import Environment
from .errors import ExtractionError, NotFoundError, PreconditionError
from .models import CONTENT_TYPE, STORAGE_TYPE, ArtifactDestination, IndexRecord, PublishOptions
from .storage import PathResolver, remove_tree, storage_name
from .transfer import Transferer

log = logging.getLogger(__name__)

DEFAULT_EXPIRY = timedelta(days=30)


class Index(Protocol):
    def find(self, namespace: str) -> IndexRecord: ...
    def build_artifact_url(self, record: IndexRecord, storage_name: str) -> str: ...
    def insert(self, namespace: str, task_id: str, rank: Optional[int], expires: Optional[datetime],
               data: Optional[dict] = None) -> IndexRecord: ...


class Queue(Protocol):
    def create_artifact(self, task_id: str, run_id: str, name: str, storage_type: str,
                        expires: datetime, content_type: str) -> ArtifactDestination: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rank_of(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


class ArtifactCache:
    """Finds, produces and publishes cached artifacts.

    A consumer calls `resolve` to materialize an artifact; a producer calls
    `package` and then `publish`. Each call is a strict sequence of steps.
    """

    def __init__(self, resolver: PathResolver, index: Index, queue: Queue, transferer: Transferer,
                 archiver: Archiver, env: Optional[Environment] = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self.resolver = resolver
        self.index = index
        self.queue = queue
        self.transferer = transferer
        self.archiver = archiver
        self.env = env or Environment()
        self.clock = clock

    def local_path(self, name: str) -> str:
        return self.resolver.local_path(name)

    def lookup_remote(self, namespace: str, artifact: str) -> Optional[str]:
        """URL of `artifact` on the task indexed under `namespace`, or None on a miss."""
        try:
            record = self.index.find(namespace)
        except NotFoundError:
            log.info("No indexed task for %s", namespace)
            return None
        return self.index.build_artifact_url(record, artifact)

    def resolve(self, name: str, namespace: str, dest: str) -> bool:
        local_path = self.local_path(name)
        if self.resolver.exists(name):
            try:
                archive.extract(self.archiver, local_path, dest)
                log.info("Using local cache %s", local_path)
                return True
            except ExtractionError as e:
                # Corrupt cache: drop it and try the remote copy exactly once.
                log.warning("Local cache %s is corrupt, re-downloading: %s", local_path, e)
                self.resolver.remove(name)
                remove_tree(dest)

        url = self._stage("index lookup", name, self.lookup_remote, namespace, storage_name(name))
        if not url:
            return False

        self._stage("download", name, self.transferer.download, url, local_path)
        self._stage("extract remote copy", name, archive.extract, self.archiver, local_path, dest)
        log.info("Restored %s from %s", name, url)
        return True

    def publish(self, name: str, namespace: str, options: Optional[PublishOptions] = None) -> IndexRecord:
        """Upload the local artifact and index it under `namespace`.

        Requires `package` to have produced the local file first.
        """
        local_path = self.local_path(name)
        if not self.resolver.exists(name):
            raise PreconditionError(f"Artifact ({local_path}) must exist locally first, did you call package?")

        opts = options or PublishOptions()
        now = self.clock()
        task_id = opts.task_id or self.env.task_id
        run_id = opts.run_id or self.env.run_id
        expires = opts.expires or now + DEFAULT_EXPIRY
        rank = opts.rank if opts.rank is not None else rank_of(now)
        if not task_id:
            raise PreconditionError("must pass task_id (or set TASK_ID)")
        if not run_id:
            raise PreconditionError("must pass run_id (or set RUN_ID)")

        dest = self.queue.create_artifact(task_id, str(run_id), storage_name(name), storage_type=STORAGE_TYPE,
                                          expires=expires, content_type=CONTENT_TYPE)
        self.transferer.upload(local_path, dest.put_url)
        # Rank is creation time; the index keeps whichever registration ranks highest.
        record = self.index.insert(namespace, task_id, rank, expires, {})
        log.info("Published %s as %s under %s", local_path, storage_name(name), namespace)
        return record

    def package(self, name: str, cwd: str, files: Sequence[str]) -> str:
        path = self.local_path(name)
        archive.compress(self.archiver, files, cwd, path)
        log.info("Packaged %s into %s", ", ".join(files), path)
        return path

    def _stage(self, stage: str, name: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception:
            log.error("Resolving %s failed during %s", name, stage)
            raise
