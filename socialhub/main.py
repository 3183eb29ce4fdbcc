import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from socialhub.config import settings
from socialhub.deps import init_db
from socialhub.errors import SocialHubError
from socialhub.logging_config import configure_logging, request_logging_middleware

# Routers
from socialhub.routers import ai, auth, facebook, linkedin, posts, social

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logger.info("SocialHub API started (environment=%s)", settings.environment)
    yield


app = FastAPI(title="SocialHub API", version="1.0.0", lifespan=lifespan)

app.add_middleware(request_logging_middleware())
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
)


@app.exception_handler(SocialHubError)
async def socialhub_error_handler(request: Request, exc: SocialHubError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "An unexpected error occurred"})


@app.get("/")
def root():
    return {"message": "SocialHub API is running!"}


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.environment}


# Mount routes
app.include_router(auth.router)       # /api/auth/*
app.include_router(facebook.router)   # /api/facebook/*
app.include_router(linkedin.router)   # /api/linkedin/*
app.include_router(posts.router)      # /api/posts/*
app.include_router(social.router)     # /api/social/*
app.include_router(ai.router)         # /api/ai/*
