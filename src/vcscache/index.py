from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from .errors import PreconditionError
from .models import IndexRecord
from .queue import TaskclusterQueue
from .tc_client import TaskclusterClient

log = logging.getLogger(__name__)

ROUTE_TASK = "task/{namespace}"


class TaskclusterIndex:
    """Namespace -> task lookup.

    `find` raises NotFoundError for a missing namespace and lets every other
    failure through. `insert` is fire and forget: the index service decides
    between competing ranks and owns expiry of old records.
    """

    def __init__(self, client: TaskclusterClient, queue: TaskclusterQueue) -> None:
        self.client = client
        self.queue = queue

    def find(self, namespace: str) -> IndexRecord:
        payload = self.client.request("GET", "index", ROUTE_TASK.format(namespace=namespace))
        payload.setdefault("namespace", namespace)
        return IndexRecord.from_api(payload)

    def build_artifact_url(self, record: IndexRecord, storage_name: str) -> str:
        return self.queue.build_url(record.task_id, storage_name)

    def insert(self, namespace: str, task_id: str, rank: Optional[int], expires: Optional[datetime],
               data: Optional[Dict[str, Any]] = None) -> IndexRecord:
        if rank is None or expires is None:
            raise PreconditionError(f"Index registration for {namespace} needs both rank and expires")
        record = IndexRecord(namespace=namespace, task_id=task_id, rank=rank, expires=expires, data=data or {})
        self.client.request("PUT", "index", ROUTE_TASK.format(namespace=namespace), json=record.to_api())
        log.info("Indexed task %s under %s (rank %s)", task_id, namespace, rank)
        return record
