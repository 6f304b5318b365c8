import hashlib
import hmac
import json
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, ClassVar
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

logger = logging.getLogger(__name__)

REQUIRED_PARAMETERS = ("title", "tasks", "signature", "sigexpiry")
OPTIONAL_PARAMETERS = ("maxjobs", "maxtime", "type", "async")
SIGNED_PARAMETERS = ("title", "tasks", "sigexpiry") + OPTIONAL_PARAMETERS
ENQUEUE_REQUIRED_PARAMETERS = ("type", "signature", "sigexpiry")


class Job(BaseModel):
    type: str
    params: dict[str, Any] = {}


class JobQueue(BaseModel):
    """In-process queue of jobs with a handler registered per job type.

    Safe to share between the threadpool workers that run triggers."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    handlers: dict[str, Callable[[dict[str, Any]], Any]] = {}
    queue: deque = deque()
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def register(self, job_type: str, handler: Callable[[dict[str, Any]], Any]):
        with self._lock:
            self.handlers[job_type] = handler

    def handler(self, job_type: str) -> Callable[[dict[str, Any]], Any]:
        with self._lock:
            return self.handlers[job_type]

    def push(self, job: Job):
        with self._lock:
            if job.type not in self.handlers:
                raise ValueError(f"No handler registered for job type {job.type}")
            self.queue.append(job)
        logger.debug(f"Queued job {job.type}")

    def pop(self, job_type: str | None = None) -> Job | None:
        with self._lock:
            for index, job in enumerate(self.queue):
                if job_type is None or job.type == job_type:
                    del self.queue[index]
                    return job
        return None

    def __len__(self):
        with self._lock:
            return len(self.queue)


class JobRunner(BaseModel):
    queue: JobQueue

    def run(self, job_type: str | None = None, max_jobs: int = 1, max_time: int = 30) -> dict[str, Any]:
        """Run queued jobs until none is ready or a bound is reached"""
        started = time.monotonic()
        response = {"jobs": [], "reached": "none-ready"}
        while True:
            job = self.queue.pop(job_type)
            if job is None:
                break
            job_started = time.monotonic()
            status = "ok"
            error = None
            try:
                self.queue.handler(job.type)(job.params)
            except Exception as e:
                # A failing job must not keep the rest of the batch from running
                logger.exception(f"Job {job.type} failed")
                status = "failed"
                error = str(e)
            response["jobs"].append(
                {
                    "type": job.type,
                    "status": status,
                    "error": error,
                    "time": int((time.monotonic() - job_started) * 1000),
                }
            )
            if len(response["jobs"]) >= max_jobs:
                response["reached"] = "job-limit"
                break
            if time.monotonic() - started >= max_time:
                response["reached"] = "time-limit"
                break
        logger.info(f"Ran {len(response['jobs'])} jobs, reached {response['reached']}")
        return response


def query_signature(query: dict[str, Any], secret_key: str) -> str:
    """HMAC-SHA1 over the key-sorted, urlencoded query"""
    encoded = urlencode(sorted((k, str(v)) for k, v in query.items()))
    return hmac.new(secret_key.encode("utf-8"), encoded.encode("utf-8"), hashlib.sha1).hexdigest()


class SignedRequest(BaseModel):
    """A request carrying an HMAC signature over its parameters and an expiry"""

    signed_parameters: ClassVar[tuple[str, ...]] = ()

    signature: str
    sigexpiry: int

    def signed_query(self, raw: dict[str, str]) -> dict[str, str]:
        """The parameters covered by the signature, as sent"""
        return {k: v for k, v in raw.items() if k in self.signed_parameters}

    def verify(self, raw: dict[str, str], secret_key: str, now: float | None = None) -> bool:
        if not secret_key:
            logger.warning("SECRET_KEY is not configured, rejecting job request")
            return False
        expected = query_signature(self.signed_query(raw), secret_key)
        if not hmac.compare_digest(expected.encode(), self.signature.encode("utf-8")):
            logger.warning("Job request with an invalid signature")
            return False
        if self.sigexpiry < (time.time() if now is None else now):
            logger.warning("Job request with an expired signature")
            return False
        return True


class RunJobsRequest(SignedRequest):
    model_config = ConfigDict(populate_by_name=True)

    signed_parameters: ClassVar[tuple[str, ...]] = SIGNED_PARAMETERS

    title: str
    tasks: str
    maxjobs: int = 0
    maxtime: int = 30
    type: str | None = None
    async_: bool = Field(default=True, alias="async")

    # noinspection PyMethodParameters
    @field_validator("maxjobs", "maxtime")
    def not_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def runs_jobs(self) -> bool:
        return "jobs" in self.tasks.split("|")

    @property
    def job_limit(self) -> int:
        return self.maxjobs or 1

    @property
    def time_limit(self) -> int:
        return self.maxtime or 30


class EnqueueJobRequest(SignedRequest):
    """Adds one job to the queue. params is a JSON object."""

    signed_parameters: ClassVar[tuple[str, ...]] = ("type", "params", "sigexpiry")

    type: str
    params: str = "{}"

    # noinspection PyMethodParameters
    @field_validator("params")
    def json_object(cls, v):
        try:
            value = json.loads(v)
        except ValueError:
            raise ValueError("params must be a JSON object") from None
        if not isinstance(value, dict):
            raise ValueError("params must be a JSON object")
        return v

    @property
    def job(self) -> Job:
        return Job(type=self.type, params=json.loads(self.params))
