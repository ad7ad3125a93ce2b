# aravalli/main.py
import asyncio
import os
from functools import lru_cache
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from . import assistant, bootstrap, config, crud_analyses, crud_users, database, security, simulator
from .data import models_db, schemas
from .errors import AppError, ForbiddenError, StorageError, ValidationError
from .file_access import FileAccessService
from .gemini_client import GeminiClient, build_default_client
from .log import get_logger
from .settings_service import SettingsService
from .site_builder import SiteBuilder

logger = get_logger(__name__)

app = FastAPI(title=f"{config.APP_NAME} API", version=config.SITE_VERSION)


# --- Error handling ---
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, StorageError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


@app.on_event("startup")
async def bootstrap_on_startup():
    bootstrap.run(database.engine, database.SessionLocal)


# --- Dependencies ---
_simulator = simulator.RandomAnalysisSimulator()


def get_simulator() -> simulator.AnalysisSimulator:
    return _simulator


@lru_cache(maxsize=1)
def get_llm() -> GeminiClient:
    return build_default_client()


def get_file_service() -> FileAccessService:
    return FileAccessService(
        base_dir=config.SOURCE_BASE_DIR,
        root=config.SOURCE_ROOT,
        extensions=config.SOURCE_EXTENSIONS,
        excluded_dirs=config.SOURCE_EXCLUDED_DIRS,
    )


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(database.get_db),
) -> models_db.User:
    return crud_users.get_user_by_token(db, security.parse_bearer(authorization))


async def require_admin(current_user: models_db.User = Depends(get_current_user)) -> models_db.User:
    if current_user.role != "admin":
        raise ForbiddenError("Admins only!")
    return current_user


# --- Health ---
@app.get("/api/health", tags=["System"])
async def health():
    return {"status": "ok"}


# --- Settings ---
@app.get("/api/settings", tags=["Settings"])
async def read_settings(response: Response, db: Session = Depends(database.get_db)):
    record = SettingsService(db).get_record()
    response.headers["X-Config-Version"] = str(record.version)
    return record.config


@app.post("/api/admin/settings", tags=["Admin"])
async def update_settings(
    payload: schemas.SettingsUpdate,
    db: Session = Depends(database.get_db),
    admin: models_db.User = Depends(require_admin),
):
    version = SettingsService(db).set(payload.config)
    logger.info("Settings changed by %s", admin.username)
    return {"success": True, "version": version}


# --- Prompt history ---
@app.post("/api/admin/prompt-history", status_code=status.HTTP_201_CREATED, tags=["Admin"])
async def add_prompt_history(
    payload: schemas.PromptRequest,
    db: Session = Depends(database.get_db),
    admin: models_db.User = Depends(require_admin),
):
    if not payload.prompt.strip():
        raise ValidationError("Prompt is required")
    crud_analyses.add_prompt(db, payload.prompt)
    return {"success": True}


@app.get("/api/admin/prompt-history", tags=["Admin"])
async def read_prompt_history(
    db: Session = Depends(database.get_db),
    admin: models_db.User = Depends(require_admin),
):
    prompts = crud_analyses.list_prompts(db, limit=config.PROMPT_HISTORY_LIMIT)
    return {"prompts": [schemas.PromptHistorySchema.model_validate(p).model_dump(mode="json") for p in prompts]}


@app.get("/api/admin/stats", tags=["Admin"])
async def admin_stats(
    db: Session = Depends(database.get_db),
    admin: models_db.User = Depends(require_admin),
):
    return {
        "stats": {
            "totalUsers": crud_users.count_users(db),
            "siteVersion": config.SITE_VERSION,
            "aiRequests": crud_analyses.count_prompts(db),
        }
    }


# --- Source files ---
@app.get("/api/admin/files", tags=["Admin"])
async def list_source_files(
    files: FileAccessService = Depends(get_file_service),
    admin: models_db.User = Depends(require_admin),
):
    try:
        return {"files": files.list_files()}
    except OSError as e:
        logger.exception("List files error")
        raise StorageError("Failed to list files") from e


@app.post("/api/admin/read-file", tags=["Admin"])
async def read_source_file(
    payload: schemas.FilePathRequest,
    files: FileAccessService = Depends(get_file_service),
    admin: models_db.User = Depends(require_admin),
):
    return {"content": files.read_file(payload.path)}


@app.post("/api/admin/write-file", tags=["Admin"])
async def write_source_file(
    payload: schemas.FileWriteRequest,
    files: FileAccessService = Depends(get_file_service),
    admin: models_db.User = Depends(require_admin),
):
    files.write_file(payload.path, payload.content)
    logger.info("File %s written by %s", payload.path, admin.username)
    return {"success": True}


# --- AI site builder ---
@app.post("/api/admin/builder/preview", tags=["Admin"])
async def builder_preview(
    payload: schemas.PromptRequest,
    db: Session = Depends(database.get_db),
    files: FileAccessService = Depends(get_file_service),
    llm: GeminiClient = Depends(get_llm),
    admin: models_db.User = Depends(require_admin),
):
    builder = SiteBuilder(files, llm, record_prompt=lambda p: crud_analyses.add_prompt(db, p))
    changes = await builder.preview(payload.prompt)
    return {
        "state": builder.state.value,
        "message": f"Preview generated for {len(changes)} files. Review the suggested changes below.",
        "changes": [change.to_dict() for change in changes],
    }


@app.post("/api/admin/builder/apply", tags=["Admin"])
async def builder_apply(
    payload: schemas.ApplyRequest,
    files: FileAccessService = Depends(get_file_service),
    admin: models_db.User = Depends(require_admin),
):
    builder = SiteBuilder(files)
    written = builder.apply({change.path: change.updated for change in payload.changes})
    logger.info("Site builder changes applied by %s: %s", admin.username, written)
    return {"success": True, "state": builder.state.value, "files": written}


# --- Auth ---
@app.post("/api/register", tags=["Authentication"])
async def register_user(user: schemas.UserCreate, db: Session = Depends(database.get_db)):
    created_user = crud_users.create_user(db=db, user=user)
    return {"success": True, "userId": str(created_user.id)}


@app.post("/api/login", tags=["Authentication"])
async def login(payload: schemas.LoginRequest, db: Session = Depends(database.get_db)):
    user = crud_users.authenticate(db, payload.username, payload.password)
    token = crud_users.create_session(db, user)
    logger.info("User %s logged in", user.username)
    return {"success": True, "token": token, "username": user.username, "role": user.role}


@app.post("/api/logout", tags=["Authentication"])
async def logout(payload: schemas.LogoutRequest, db: Session = Depends(database.get_db)):
    crud_users.delete_session(db, payload.token)
    return {"success": True}


@app.get("/api/me", tags=["Authentication"])
async def read_users_me(current_user: models_db.User = Depends(get_current_user)):
    return {"user": schemas.UserPublic.model_validate(current_user).model_dump()}


# --- Analysis ---
@app.post("/api/analyze", tags=["Analysis"])
async def analyze(
    payload: schemas.AnalyzeRequest,
    db: Session = Depends(database.get_db),
    sim: simulator.AnalysisSimulator = Depends(get_simulator),
    llm: GeminiClient = Depends(get_llm),
):
    location = payload.location or "Unknown Location"
    image = payload.image or ""

    reading = sim.simulate(location, image)
    db_analysis = crud_analyses.create_analysis(db, location, image, reading)
    logger.info("Analysis %s saved: %s (ndvi=%.3f)", db_analysis.id, reading.status, reading.ndvi)

    explanation = await assistant.explain_image(llm, image)
    return {"id": db_analysis.id, **reading.to_response(), "explanation": explanation}


@app.post("/api/verify/{analysis_id}", tags=["History"])
async def verify_analysis(
    analysis_id: int,
    payload: schemas.VerifyRequest,
    db: Session = Depends(database.get_db),
):
    crud_analyses.set_verified(db, analysis_id, payload.correct)
    return {"success": True}


@app.get("/api/history", response_model=List[schemas.AnalysisRecordSchema], tags=["History"])
async def read_history(db: Session = Depends(database.get_db)):
    return crud_analyses.list_recent_analyses(db, limit=config.HISTORY_LIMIT)


# --- Dashboard data ---
@app.get("/api/location/{location_id}", tags=["Dashboard"])
async def read_location(location_id: str):
    details = simulator.location_details(location_id)
    if config.LOCATION_DELAY_SECONDS > 0:
        await asyncio.sleep(config.LOCATION_DELAY_SECONDS)
    return details


@app.get("/api/trends", tags=["Dashboard"])
async def read_trends():
    return simulator.ndvi_trend()


# --- Assistant ---
@app.post("/api/chat", tags=["Assistant"])
async def chat(payload: schemas.ChatRequest, llm: GeminiClient = Depends(get_llm)):
    reply = await assistant.chat(llm, payload.message)
    return {"reply": reply}


@app.get("/api/suggestions", tags=["Assistant"])
async def read_suggestions():
    return {"suggestions": assistant.DEFAULT_SUGGESTIONS}


@app.post("/api/suggestions/generate", tags=["Assistant"])
async def generate_suggestions(llm: GeminiClient = Depends(get_llm)):
    return {"suggestions": await assistant.generate_suggestions(llm)}


# --- Front end (must stay below the API routes) ---
if os.path.isdir(config.STATIC_DIR):
    app.mount("/", StaticFiles(directory=config.STATIC_DIR, html=True), name="static")
else:
    logger.warning("Static directory %s not found; serving API only", config.STATIC_DIR)


def run():
    logger.info("Starting Uvicorn server...")
    uvicorn.run("aravalli.main:app", host="127.0.0.1", port=8000, reload=True)


if __name__ == "__main__":
    run()
