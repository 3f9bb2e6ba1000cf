from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from dotenv import load_dotenv


# ---- load .env files (backend/.env then repo .env) ----------------------
CURRENT_FILE = Path(__file__).resolve()
BACKEND_DIR = CURRENT_FILE.parents[1]
REPO_ROOT = CURRENT_FILE.parents[2]

_env_candidates = [
    BACKEND_DIR / ".env.local",
    BACKEND_DIR / ".env",
    REPO_ROOT / ".env.local",
    REPO_ROOT / ".env",
]
_loaded = []
for env_path in _env_candidates:
    if env_path.exists():
        # earlier files win; already-set env vars are never overridden
        load_dotenv(env_path, override=False)
        _loaded.append(str(env_path))

if _loaded:
    print(f"[main] Loaded env files: {', '.join(_loaded)}")
else:
    print("[main] No .env file found next to backend/ or repo root.")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# routers read DATABASE_URL / CELERY_* at import time, so import after .env
from stockroom.core.celery_app import init_celery
from stockroom.core.database import init_db
from stockroom.routers import items
from stockroom.routers import stock
from stockroom.routers import transactions
from stockroom.routers import upload


app = FastAPI(title="Stockroom API")


@app.on_event("startup")
def _startup() -> None:
    init_celery()
    # dev convenience; production schemas come from alembic
    if (os.getenv("DB_CREATE_ALL") or "").lower() in {"1", "true", "yes"}:
        init_db()


# ---- CORS (dev-friendly) ----------------------------------------------
_default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
_env = os.getenv("FRONTEND_ORIGINS") or os.getenv("FRONTEND_ORIGIN") or ""
_env_list = [o.strip() for o in _env.split(",") if o and o.strip()]
origins = sorted(set(_default_origins + _env_list))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

# ---- serve generated error CSVs ------------------------------------------
upload.ERROR_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/files", StaticFiles(directory=str(upload.ERROR_DIR)), name="files")

# ---- register routers ------------------------------------------------------
app.include_router(items.router)
app.include_router(transactions.router)
app.include_router(stock.router)
app.include_router(upload.router)


# ---- simple health check ---------------------------------------------------
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check for the container / process manager."""
    return {"status": "ok"}
