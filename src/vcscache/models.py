from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CONTENT_TYPE = "application/x-tar"
STORAGE_TYPE = "s3"


def to_iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def from_iso(raw: str) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


@dataclass
class IndexRecord:
    namespace: str
    task_id: str
    rank: int
    expires: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_api(payload: Dict[str, Any]) -> "IndexRecord":
        return IndexRecord(
            namespace=payload.get("namespace", ""),
            task_id=payload["taskId"],
            rank=int(payload.get("rank", 0)),
            expires=from_iso(payload["expires"]),
            data=payload.get("data") or {},
        )

    def to_api(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "rank": self.rank, "data": self.data, "expires": to_iso(self.expires)}


@dataclass
class PublishOptions:
    task_id: Optional[str] = None
    run_id: Optional[str] = None
    expires: Optional[datetime] = None
    rank: Optional[int] = None


@dataclass
class ArtifactDestination:
    storage_type: str
    put_url: str
    content_type: str = CONTENT_TYPE
    expires: Optional[datetime] = None

    @staticmethod
    def from_api(payload: Dict[str, Any]) -> "ArtifactDestination":
        exp = payload.get("expires")
        return ArtifactDestination(
            storage_type=payload.get("storageType", STORAGE_TYPE),
            put_url=payload["putUrl"],
            content_type=payload.get("contentType", CONTENT_TYPE),
            expires=from_iso(exp) if exp else None,
        )
