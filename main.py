import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import Principal, require_principal
from config import Settings
from credentials import CredentialStore
from database import COMMENTS, TASKS, USERS, connect, list_collections, ping, serialize_doc
from errors import AuthError, StoreError, TaskTrackerError
from logging_setup import setup_logging
from repositories import Clock, CommentRepository, TaskRepository, utc_now
from schemas import CommentIn, Credentials, TaskIn
from tokens import TokenService

logger = logging.getLogger(__name__)


# Dependencies
def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_tasks(request: Request) -> TaskRepository:
    return request.app.state.tasks


def get_comments(request: Request) -> CommentRepository:
    return request.app.state.comments


# Auth
auth_router = APIRouter(prefix="/auth", tags=["Auth"])


@auth_router.post("/register", status_code=201)
def register(body: Credentials, credentials: CredentialStore = Depends(get_credentials)):
    user_id = credentials.register(body.username, body.password)
    return {"message": "User registered successfully", "userId": user_id}


@auth_router.post("/login")
def login(
    body: Credentials,
    credentials: CredentialStore = Depends(get_credentials),
    tokens: TokenService = Depends(get_tokens),
):
    user = credentials.find_by_username(body.username) if body.username else None
    if not user or not credentials.verify_password(user, body.password):
        logger.info("Failed login for %r", body.username)
        raise AuthError("Invalid credentials")
    return {"token": tokens.issue(str(user["_id"]))}


@auth_router.post("/logout")
def logout():
    # tokens are stateless; the client just drops it
    return {"message": "User logged out successfully"}


# Tasks
tasks_router = APIRouter(prefix="/tasks", tags=["Tasks"], dependencies=[Depends(require_principal)])


@tasks_router.get("")
def list_tasks(tasks: TaskRepository = Depends(get_tasks)) -> List[dict]:
    return [serialize_doc(x) for x in tasks.list()]


@tasks_router.get("/{task_id}")
def get_task(task_id: str, tasks: TaskRepository = Depends(get_tasks)):
    return serialize_doc(tasks.get(task_id))


@tasks_router.post("", status_code=201)
def create_task(
    body: TaskIn,
    principal: Principal = Depends(require_principal),
    tasks: TaskRepository = Depends(get_tasks),
):
    task_id = tasks.create(body.fields(), created_by=principal.user_id)
    return {"message": "Task created successfully", "taskId": task_id}


@tasks_router.put("/{task_id}")
def update_task(task_id: str, body: TaskIn, tasks: TaskRepository = Depends(get_tasks)):
    tasks.update(task_id, body.fields())
    return {"message": "Task updated successfully"}


@tasks_router.delete("/{task_id}")
def delete_task(task_id: str, tasks: TaskRepository = Depends(get_tasks)):
    tasks.delete(task_id)
    return {"message": "Task deleted successfully"}


# Comments
comments_router = APIRouter(prefix="/comments", tags=["Comments"], dependencies=[Depends(require_principal)])


@comments_router.get("")
def list_comments(comments: CommentRepository = Depends(get_comments)) -> List[dict]:
    return [serialize_doc(x) for x in comments.list()]


@comments_router.get("/{comment_id}")
def get_comment(comment_id: str, comments: CommentRepository = Depends(get_comments)):
    return serialize_doc(comments.get(comment_id))


@comments_router.post("", status_code=201)
def create_comment(body: CommentIn, comments: CommentRepository = Depends(get_comments)):
    comment_id = comments.create(body.fields())
    return {"message": "Comment created successfully", "commentId": comment_id}


@comments_router.put("/{comment_id}")
def update_comment(comment_id: str, body: CommentIn, comments: CommentRepository = Depends(get_comments)):
    comments.update(comment_id, body.fields())
    return {"message": "Comment updated successfully"}


@comments_router.delete("/{comment_id}")
def delete_comment(comment_id: str, comments: CommentRepository = Depends(get_comments)):
    comments.delete(comment_id)
    return {"message": "Comment deleted successfully"}


# Root endpoints
root_router = APIRouter()


@root_router.get("/", response_class=PlainTextResponse)
def read_root():
    return "Task Management API"


@root_router.get("/health")
def health(request: Request):
    db = request.app.state.db
    response = {
        "backend": "running",
        "database": "unavailable",
        "database_name": getattr(db, "name", None),
        "collections": [],
    }
    if ping(db):
        response["database"] = "connected"
        response["collections"] = list_collections(db)
    return response


# Error translation
async def handle_domain_error(request: Request, exc: TaskTrackerError) -> JSONResponse:
    body = {"message": exc.message}
    if isinstance(exc, StoreError):
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.detail)
        if exc.detail:
            body["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # framework errors: unknown route, wrong method, unreadable body
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


async def handle_bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request body", "errors": jsonable_encoder(exc.errors())},
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Something went wrong! Please try again later."})


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """
    Build the application. Without `database`, a MongoClient is connected
    right here, so an unreachable store stops startup before any request.
    """
    if settings is None:
        settings = Settings.from_env()
    owns_client = database is None
    if database is None:
        database = connect(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_client:
            database.client.close()
            logger.info("MongoDB client closed")

    app = FastAPI(title="Task Management API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.db = database
    app.state.credentials = CredentialStore(database[USERS], rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.jwt_secret, ttl=timedelta(seconds=settings.token_ttl_seconds))
    app.state.tasks = TaskRepository(database[TASKS], clock=clock)
    app.state.comments = CommentRepository(database[COMMENTS], clock=clock)

    app.add_exception_handler(TaskTrackerError, handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_bad_body)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(root_router)
    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.include_router(comments_router)
    return app


def run() -> None:
    settings = Settings.from_env()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    uvicorn.run("main:create_app", factory=True, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
