import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import anyio.from_thread
from fastapi import APIRouter, BackgroundTasks, FastAPI, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi_cache import FastAPICache
from fastapi_cache.backends.inmemory import InMemoryBackend
from fastapi_cache.decorator import cache
from pydantic import ValidationError

import config
from models.contribution import ContributionsPage
from models.contributions import UserContributions
from models.errors import ContributionsError
from models.jobs import (
    ENQUEUE_REQUIRED_PARAMETERS,
    REQUIRED_PARAMETERS,
    EnqueueJobRequest,
    JobQueue,
    JobRunner,
    RunJobsRequest,
)
from models.permissions import CallerPermissions
from models.read import Read
from models.splitter import Splitter
from models.validator import Validator

if "USER" not in os.environ:
    os.environ["USER"] = "tools.usercontribs-backend"

logging.basicConfig(level=config.LOGLEVEL)
logger = logging.getLogger(__name__)

job_queue = JobQueue()


def purge_cache(params: dict[str, Any]):
    """Drop cached listing responses, e.g. after revisions were deleted or suppressed"""
    # Jobs run in threadpool workers, the cache backend lives on the event loop
    cleared = anyio.from_thread.run(FastAPICache.clear, params.get("namespace"))
    logger.info(f"Purged {cleared} cached responses")


job_queue.register("purgeCache", purge_cache)


# noinspection PyShadowingNames,PyUnusedLocal
@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup code
    FastAPICache.init(InMemoryBackend(), prefix=config.CACHE_PREFIX, enable=config.CACHE_ENABLED)
    yield
    # shutdown code (if needed)


app = FastAPI(title="usercontribs-backend", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # or list of allowed origins
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
api_router = APIRouter(prefix="/api/v2")


def sanitize_errors(errors: Any) -> list[Any]:
    sanitized_errors_ = []
    for error in errors.errors():
        sanitized_errors_.append(
            {
                "loc": list(error["loc"]),  # tuples to lists
                "msg": error["msg"],
                "type": error["type"],
            }
        )
    return sanitized_errors_


def split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    splitter_ = Splitter(values_string=value)
    return splitter_.split_values()


def bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[len("bearer "):].strip()
    return None


def open_read() -> Read:
    return Read()


@api_router.get(
    "/usercontribs", response_model=ContributionsPage, response_model_exclude_none=True
)
@cache(expire=config.CACHE_EXPIRE)
def get_usercontribs(
    user: str | None = Query(
        default=None, description="Pipe-separated user names or IP addresses, e.g. Example|192.0.2.1"
    ),
    userids: str | None = Query(default=None, description="Pipe-separated user ids"),
    userprefix: str | None = Query(
        default=None, description="List contributions of all users whose name starts with this"
    ),
    limit: str = Query(default=str(config.DEFAULT_LIMIT), description='Number of entries, or "max"'),
    start: str | None = Query(default=None, description="Timestamp to start listing from"),
    end: str | None = Query(default=None, description="Timestamp to stop listing at"),
    continuation: str | None = Query(
        default=None, alias="continue", description="Value returned by the previous request"
    ),
    dir: str = Query(default="older", description="older or newer"),
    namespace: str | None = Query(default=None, description="Pipe-separated namespace ids"),
    prop: str = Query(default="|".join(config.DEFAULT_PROPS), description="Pipe-separated properties"),
    show: str | None = Query(default=None, description="Pipe-separated row filters, e.g. minor|!top"),
    tag: str | None = Query(default=None, description="Only list revisions with this change tag"),
    toponly: bool = Query(default=False, deprecated=True),
    authorization: str | None = Header(default=None),
):
    """
    List the contributions of one or more users, newest first by default.

    Exactly one of user, userids and userprefix has to be given. The result
    comes in pages of at most limit entries; when more entries exist the
    response carries a continue value to pass back for the next page.
    Revisions whose author is hidden from the caller are never listed,
    hidden comments are left out and flagged with commenthidden.

    Example:
        GET /api/v2/usercontribs?user=Example&prop=ids|timestamp|size&limit=2 -> 200
        GET /api/v2/usercontribs?userids=0 -> 400

    Caching: This endpoint is using an in-memory cache with a
    timeout of 60s, keyed by all parameters including the caller's token.
    """
    # Step 1: validate the shape of the request
    try:
        params = Validator(
            user=split(user),
            userids=split(userids),
            userprefix=userprefix,
            limit=limit,
            start=start,
            end=end,
            continuation=continuation,
            dir=dir,
            namespace=split(namespace),
            prop=split(prop),
            show=split(show) or [],
            tag=tag,
            toponly=toponly,
        )
    except ValidationError as e:
        # Forward the error to the user with status 422
        raise HTTPException(status_code=422, detail=sanitize_errors(e)) from e
    permissions = CallerPermissions.from_token(bearer_token(authorization))

    # Step 2: fetch one page
    read = open_read()
    try:
        return UserContributions(params=params, permissions=permissions, read=read).fetch()
    except ContributionsError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict()) from e
    finally:
        read.close()


async def request_values(request: Request) -> dict[str, str]:
    """Query parameters merged with a form-encoded body, the body winning"""
    values = dict(request.query_params)
    form = await request.form()
    values.update({k: v for k, v in form.items() if isinstance(v, str)})
    return values


@api_router.post("/runjobs", include_in_schema=False)
async def run_jobs(request: Request, background_tasks: BackgroundTasks):
    """Run queued jobs, triggered by a signed request"""
    if config.READ_ONLY:
        return JSONResponse(status_code=423, content={"detail": "The service is in read-only mode."})

    raw = await request_values(request)
    missing = [p for p in REQUIRED_PARAMETERS if p not in raw]
    if missing:
        return JSONResponse(
            status_code=400, content={"detail": "Missing parameters: " + ", ".join(missing)}
        )
    try:
        params = RunJobsRequest(**raw)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"detail": sanitize_errors(e)})
    if not params.verify(raw, config.SECRET_KEY):
        return JSONResponse(status_code=400, content={"detail": "Invalid or stale signature provided."})

    runner = JobRunner(queue=job_queue)
    if not params.runs_jobs:
        return Response(status_code=202 if params.async_ else 200)
    run_args = {"job_type": params.type, "max_jobs": params.job_limit, "max_time": params.time_limit}
    if params.async_:
        # The client may disconnect once it has the 202, the jobs run after
        # the response is sent
        background_tasks.add_task(runner.run, **run_args)
        return Response(status_code=202)
    return await run_in_threadpool(runner.run, **run_args)


@api_router.post("/jobs", include_in_schema=False)
async def enqueue_job(request: Request):
    """Queue a job of a registered type, by a signed request"""
    if config.READ_ONLY:
        return JSONResponse(status_code=423, content={"detail": "The service is in read-only mode."})

    raw = await request_values(request)
    missing = [p for p in ENQUEUE_REQUIRED_PARAMETERS if p not in raw]
    if missing:
        return JSONResponse(
            status_code=400, content={"detail": "Missing parameters: " + ", ".join(missing)}
        )
    try:
        params = EnqueueJobRequest(**raw)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"detail": sanitize_errors(e)})
    if not params.verify(raw, config.SECRET_KEY):
        return JSONResponse(status_code=400, content={"detail": "Invalid or stale signature provided."})
    try:
        job_queue.push(params.job)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"detail": str(e)})
    return JSONResponse(status_code=202, content={"queued": len(job_queue)})


@app.get("/", include_in_schema=False)  # root redirect remains at /
def root_redirect():
    return RedirectResponse(url="/docs")


app.include_router(api_router)
