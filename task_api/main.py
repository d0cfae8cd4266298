from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from task_api import schemas
from task_api.auth import TokenCodec, get_user_id
from task_api.config import Settings, get_settings
from task_api.database import init_db, make_engine
from task_api.errors import ConfigurationError, InvalidError, NotFoundError, StoreError
from task_api.logger import logger
from task_api.middleware import build_middleware
from task_api.store import SQLTaskStore, TaskStore

ERROR_RESPONSES = {
    code: {"model": schemas.ErrorResponse} for code in (400, 401, 404, 500)
}

router = APIRouter(responses=ERROR_RESPONSES)


def get_store(request: Request) -> TaskStore:
    """Task store dependency"""
    return request.app.state.store


def parse_completed(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    if value == "true":
        return True
    if value == "false":
        return False
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid completed value")


# Largest id a 64-bit INTEGER column can hold
MAX_TASK_ID = 2**63 - 1

TaskID = Annotated[int, Path(gt=0, le=MAX_TASK_ID, description="Positive task id")]


@router.get("/health", tags=["Health"])
def health_check(request: Request):
    """Basic health check"""
    return {"status": "healthy", "service": request.app.state.settings.app_name}


@router.get("/tasks", response_model=list[schemas.Task], tags=["Tasks"])
def list_tasks(completed: Optional[str] = None, store: TaskStore = Depends(get_store)):
    """List tasks, optionally filtered by ?completed=true|false"""
    filter_completed = parse_completed(completed)
    try:
        return store.list_tasks(filter_completed)
    except StoreError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


@router.post(
    "/tasks",
    response_model=schemas.Task,
    status_code=status.HTTP_201_CREATED,
    tags=["Tasks"]
)
def create_task(
        payload: schemas.TaskIn,
        store: TaskStore = Depends(get_store),
        user_id: int = Depends(get_user_id),
):
    """Create a new task"""
    task = schemas.Task(**payload.model_dump())
    try:
        store.create_task(task)
    except InvalidError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
    logger.info(f"Task {task.id} created by user {user_id}")
    return task


@router.get("/tasks/{task_id}", response_model=schemas.Task, tags=["Tasks"])
def read_task(task_id: TaskID, store: TaskStore = Depends(get_store)):
    """Get a specific task by ID"""
    try:
        return store.get_task(task_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    except StoreError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


@router.put(
    "/tasks/{task_id}",
    response_model=schemas.Task,
    response_model_exclude_none=True,
    tags=["Tasks"]
)
def update_task(
        payload: schemas.TaskIn,
        task_id: TaskID,
        store: TaskStore = Depends(get_store),
):
    """Replace a task's title, description and completed flag.

    The response echoes the submitted fields with the refreshed updated_at;
    the row is not read back, so created_at is left out.
    """
    task = schemas.Task(id=task_id, **payload.model_dump())
    try:
        store.update_task(task)
    except InvalidError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    except StoreError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
    return task


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Tasks"])
def delete_task(task_id: TaskID, store: TaskStore = Depends(get_store)):
    """Delete a task"""
    try:
        store.delete_task(task_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    except StoreError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    locations = {error["loc"][0] for error in exc.errors() if error.get("loc")}
    message = "invalid id" if "path" in locations else "invalid json"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def create_app(settings: Optional[Settings] = None, store: Optional[TaskStore] = None) -> FastAPI:
    """Build the application: routes, store, middleware chain and auth gate"""
    settings = settings or get_settings()
    if settings.auth_enabled and not settings.jwt_secret:
        raise ConfigurationError("auth is enabled but TASK_API_JWT_SECRET is not set")

    if store is None:
        store = SQLTaskStore(make_engine(settings.database_url))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events"""
        logger.info(f"Starting {settings.app_name}")
        if isinstance(store, SQLTaskStore):
            init_db(store.engine)
        yield
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Task CRUD API",
        middleware=build_middleware(settings, TokenCodec(settings)),
        exception_handlers={
            StarletteHTTPException: http_exception_handler,
            RequestValidationError: validation_exception_handler,
        },
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.include_router(router)
    return app


app = create_app()
