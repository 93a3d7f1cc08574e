from datetime import timedelta
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, engine, SessionLocal
from .cleanup import purge_stale_sessions
from .settings import settings, DEFAULT_JWT_SECRET
from .routers import health
from .routers import auth
from .routers import users
from .routers import quiz
from .routers import courses
from .routers import schedule
from .routers import chat

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SkillSphere API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origin_list(),
	allow_methods=["*"],
	allow_headers=["*"],
	allow_credentials=True,
)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(quiz.router)
app.include_router(courses.router)
app.include_router(schedule.router)
app.include_router(chat.router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
	return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
	errors = exc.errors()
	if errors:
		first = errors[0]
		field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
		message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
	else:
		message = "Invalid request"
	return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
	logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
	return JSONResponse({"error": "Internal server error"}, status_code=500)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


def _purge_sessions() -> None:
	db = SessionLocal()
	try:
		purge_stale_sessions(db, timedelta(days=settings.session_retention_days))
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Session cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_sessions()


def _warn_on_config() -> None:
	if not settings.gemini_api_key:
		logger.warning("GEMINI_API_KEY is not set; quizzes, recommendations, schedules and chat will use static fallbacks")
	if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
		logger.warning("JWT_SECRET_KEY is the built-in default; set it before deploying")


@app.on_event("startup")
async def startup_event():
	_warn_on_config()
	Base.metadata.create_all(bind=engine)
	_purge_sessions()
	asyncio.create_task(_cleanup_watcher())
