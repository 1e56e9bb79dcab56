from __future__ import annotations
import logging
from datetime import datetime
from .models import ArtifactDestination, to_iso
from .tc_client import TaskclusterClient

log = logging.getLogger(__name__)

ROUTE_CREATE_ARTIFACT = "task/{task_id}/runs/{run_id}/artifacts/{name}"
ROUTE_LATEST_ARTIFACT = "task/{task_id}/artifacts/{name}"


class TaskclusterQueue:
    """Blob storage side of the cache: artifact slots attached to tasks."""

    def __init__(self, client: TaskclusterClient) -> None:
        self.client = client

    def create_artifact(self, task_id: str, run_id: str, name: str, storage_type: str,
                        expires: datetime, content_type: str) -> ArtifactDestination:
        route = ROUTE_CREATE_ARTIFACT.format(task_id=task_id, run_id=run_id, name=name)
        payload = self.client.request("POST", "queue", route, json={
            "storageType": storage_type, "expires": to_iso(expires), "contentType": content_type,
        })
        log.debug("Created artifact %s on task %s run %s", name, task_id, run_id)
        return ArtifactDestination.from_api(payload)

    def build_url(self, task_id: str, name: str) -> str:
        return self.client.url("queue", ROUTE_LATEST_ARTIFACT.format(task_id=task_id, name=name))
