import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import Base, engine, ensure_schema
from .errors import AnalysisError
from .settings import settings
from .routers import health
from .routers import analysis
from .routers import comments
from .routers import progress

logging.basicConfig(
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=settings.log_level
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Delphi Consensus Analysis API")
app.include_router(health.router)
app.include_router(analysis.router)
app.include_router(comments.router)
app.include_router(progress.router)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
	if exc.status_code >= 500:
		logger.error("Error in %s: %s", request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "step": exc.step})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
	return JSONResponse(
		status_code=400,
		content={"error": "request body must be valid JSON matching the schema", "detail": jsonable_errors(exc)},
	)


def jsonable_errors(exc: RequestValidationError):
	# ctx may hold exception objects that JSON cannot encode
	return jsonable_encoder([{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()])


@app.get("/info")
def root():
	return {
		"status": "ok",
		"cut_off_consensus": settings.default_cut_off_consensus,
		"cut_off_nonessential": settings.default_cut_off_nonessential,
	}


@app.on_event("startup")
async def startup_event():
	# The survey tables normally exist already; this only helps local development
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	ensure_schema()
