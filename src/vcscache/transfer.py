from __future__ import annotations
import os, logging
from typing import Callable, Optional, Protocol, Sequence
import requests
from tenacity import RetryCallState, RetryError, Retrying, stop_after_attempt, wait_fixed, retry_if_not_exception_type
from .errors import PreconditionError, TransferError
from .models import CONTENT_TYPE
from .process import render_argv, run_command

log = logging.getLogger(__name__)

DOWNLOAD_ATTEMPTS = 20
UPLOAD_ATTEMPTS = 10


class Transferer(Protocol):
    def download(self, url: str, local_path: str) -> None: ...
    def upload(self, local_path: str, url: str) -> None: ...


class HTTPTransferer:
    def __init__(self, timeout: int = 300, session: Optional[requests.Session] = None, chunk_size: int = 1 << 20) -> None:
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._session = session or requests.Session()

    def download(self, url: str, local_path: str) -> None:
        partial = local_path + ".part"
        try:
            with self._session.get(url, stream=True, timeout=self.timeout, allow_redirects=True) as resp:
                resp.raise_for_status()
                with open(partial, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=self.chunk_size):
                        fh.write(chunk)
        except BaseException:
            if os.path.exists(partial):
                os.remove(partial)
            raise
        os.replace(partial, local_path)

    def upload(self, local_path: str, url: str) -> None:
        size = os.path.getsize(local_path)
        with open(local_path, "rb") as fh:
            resp = self._session.put(url, data=fh, timeout=self.timeout,
                                     headers={"Content-Type": CONTENT_TYPE, "Content-Length": str(size)})
        resp.raise_for_status()


class CommandTransferer:
    """Delegates transfers to external tools, e.g. ["curl", "-fL", "-o", "{dest}", "{url}"]."""

    def __init__(self, get: Sequence[str], upload: Sequence[str]) -> None:
        self.get_argv = list(get)
        self.upload_argv = list(upload)

    def download(self, url: str, local_path: str) -> None:
        run_command(render_argv(self.get_argv, url=url, dest=local_path))

    def upload(self, local_path: str, url: str) -> None:
        run_command(render_argv(self.upload_argv, source=local_path, url=url))


class RetryingTransferer:
    """Wraps any Transferer with a fixed, sequential attempt budget per call."""

    def __init__(self, inner: Transferer, download_attempts: int = DOWNLOAD_ATTEMPTS,
                 upload_attempts: int = UPLOAD_ATTEMPTS, wait: float = 0) -> None:
        self.inner = inner
        self.download_attempts = download_attempts
        self.upload_attempts = upload_attempts
        self.wait = wait

    def download(self, url: str, local_path: str) -> None:
        dirname = os.path.dirname(local_path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        self._with_budget("download", url, self.download_attempts, lambda: self.inner.download(url, local_path))

    def upload(self, local_path: str, url: str) -> None:
        if not os.path.exists(local_path):
            raise PreconditionError(f"{local_path} must exist")
        self._with_budget("upload", url, self.upload_attempts, lambda: self.inner.upload(local_path, url))

    def _with_budget(self, operation: str, url: str, attempts: int, fn: Callable[[], None]) -> None:
        def log_failure(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.warning("%s attempt %s/%s for %s failed: %s", operation, state.attempt_number, attempts, url, exc)

        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.wait),
            retry=retry_if_not_exception_type(PreconditionError),
            after=log_failure,
        )
        try:
            retrying(fn)
        except RetryError as e:
            made = e.last_attempt.attempt_number
            cause = e.last_attempt.exception()
            if made > 1:
                log.error("%s of %s exhausted its retry budget (%s attempts)", operation, url, made)
            else:
                log.error("%s of %s failed on its first and only attempt", operation, url)
            raise TransferError(operation, url, made, exhausted=made > 1, cause=cause) from cause
