from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Environment:
    """Identity of the task this process runs in, used to default publications."""
    task_id: str = ""
    run_id: str = ""

    @staticmethod
    def from_environ(environ: Optional[Mapping[str, str]] = None) -> "Environment":
        env = os.environ if environ is None else environ
        return Environment(task_id=env.get("TASK_ID", ""), run_id=env.get("RUN_ID", ""))
