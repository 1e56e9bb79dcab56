from __future__ import annotations
import io, os, tarfile
from datetime import datetime, timezone
from typing import Dict, List
import pytest
from vcscache.archive import TarArchiver
from vcscache.cache import ArtifactCache
from vcscache.environment import Environment
from vcscache.errors import NotFoundError
from vcscache.models import ArtifactDestination, IndexRecord
from vcscache.storage import PathResolver

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeQueue:
    def __init__(self):
        self.created: List[dict] = []

    def create_artifact(self, task_id, run_id, name, storage_type, expires, content_type):
        self.created.append({"task_id": task_id, "run_id": run_id, "name": name, "storage_type": storage_type,
                             "expires": expires, "content_type": content_type})
        return ArtifactDestination(storage_type=storage_type, put_url=self.build_url(task_id, name),
                                   content_type=content_type, expires=expires)

    def build_url(self, task_id, name):
        return f"https://storage.test/{task_id}/{name}"


class FakeIndex:
    def __init__(self, queue: FakeQueue):
        self.queue = queue
        self.records: Dict[str, IndexRecord] = {}
        self.find_calls: List[str] = []

    def find(self, namespace):
        self.find_calls.append(namespace)
        if namespace not in self.records:
            raise NotFoundError(404, "GET", f"https://index.test/{namespace}")
        return self.records[namespace]

    def build_artifact_url(self, record, storage_name):
        return self.queue.build_url(record.task_id, storage_name)

    def insert(self, namespace, task_id, rank, expires, data=None):
        rec = IndexRecord(namespace=namespace, task_id=task_id, rank=rank, expires=expires, data=data or {})
        current = self.records.get(namespace)
        if current is None or rank >= current.rank:
            self.records[namespace] = rec
        return rec


class FakeTransferer:
    """Blob store kept in memory, keyed by URL."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.downloads: List[str] = []
        self.uploads: List[str] = []

    def download(self, url, local_path):
        self.downloads.append(url)
        if url not in self.blobs:
            raise IOError(f"no blob at {url}")
        os.makedirs(os.path.dirname(local_path), exist_ok=True)
        with open(local_path, "wb") as fh:
            fh.write(self.blobs[url])

    def upload(self, local_path, url):
        self.uploads.append(url)
        with open(local_path, "rb") as fh:
            self.blobs[url] = fh.read()


def make_tarball(path: str, files: Dict[str, str]) -> str:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            raw = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(raw)
            tar.addfile(info, io.BytesIO(raw))
    return path


@pytest.fixture
def remote():
    queue = FakeQueue()
    return {"queue": queue, "index": FakeIndex(queue), "transferer": FakeTransferer()}


@pytest.fixture
def make_cache(tmp_path, remote):
    def _make(cache_dir=None, env=Environment(task_id="T-env", run_id="0")):
        resolver = PathResolver(str(cache_dir or tmp_path / "cache"))
        return ArtifactCache(resolver, remote["index"], remote["queue"], remote["transferer"], TarArchiver(),
                             env=env, clock=lambda: FIXED_NOW)
    return _make
