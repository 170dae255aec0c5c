import inspect
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes.chat_route import router as chat_router
from routes.log_error_route import router as log_error_router
from routes.session_route import router as session_router
from utils.api_errors import INTERNAL_ERROR, INVALID_INPUT, RATE_LIMIT_EXCEEDED, STATUS_CODES, error_body
from utils.database_init import AsyncDatabaseInitializer
from utils.rate_limits import limiter
from utils.settings import BackendSettings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present


def build_openai_client() -> AsyncOpenAI:
    if not os.getenv("OPENAI_API_KEY"):
        raise RuntimeError("OPENAI_API_KEY is required to generate planner replies")
    try:
        return AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Could not create the OpenAI client for the planner") from exc


async def close_openai_client(client) -> None:
    closer = getattr(client, "close", None) or getattr(client, "aclose", None)
    if closer is None:
        return
    try:
        result = closer()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logging.warning("Failed to close OpenAI client: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Attach the planner dependencies to `app.state` for the app's lifetime:
      - `settings`: limits and model options from the environment
      - `db_initializer`: the SQLite store at DATABASE_DIR/planner.db
      - `openai_client`: the async client used for streamed replies
    """
    app.state.settings = BackendSettings.from_env()

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    app.state.openai_client = build_openai_client()
    logging.info("Planner API ready (model %s, database %s)", app.state.settings.openai_model, db_initializer.db_path)
    try:
        yield
    finally:
        await close_openai_client(getattr(app.state, "openai_client", None))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as a flat ``{code, message}`` body."""
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        content = exc.detail
    else:
        default_code = INTERNAL_ERROR if exc.status_code >= 500 else INVALID_INPUT
        content = error_body(STATUS_CODES.get(exc.status_code, default_code), str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body(INVALID_INPUT, "Invalid request", {"errors": jsonable_encoder(exc.errors())}),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    if request.url.path == "/api/log-error":
        message = "Too many error reports"
    else:
        message = "Rate limit exceeded. Please try again later."
    logging.warning("Rate limit hit on %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content=error_body(RATE_LIMIT_EXCEEDED, message, {"limit": str(exc.detail)}),
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    app.state.limiter = limiter
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    @app.get("/health")
    async def health(request: Request):
        """Report whether the database and the model client were set up."""
        state = request.app.state
        return {
            "ok": True,
            "db_initialized": getattr(state, "db_initializer", None) is not None,
            "openai_available": getattr(state, "openai_client", None) is not None,
        }

    app.include_router(session_router)
    app.include_router(chat_router)
    app.include_router(log_error_router)

    return app


app = create_app()
