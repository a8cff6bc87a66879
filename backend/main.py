import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from db import engine, Base, SessionLocal
from models import models  # noqa: F401 — registers all ORM models
from models.models import User, UserRole, Status, Prioridade
from routers import (auth, clients, status, prioridades, solicitantes, supports, reports,
                     dashboard, nfse)
from routers.auth import get_password_hash
from config import (CORS_ORIGINS, ADMIN_USERNAME, ADMIN_PASSWORD, DEFAULT_STATUS,
                    DEFAULT_PRIORIDADES)

logging.basicConfig(level=logging.INFO,
                    format="%(asctime)s  %(levelname)s  %(name)s — %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="DB Support",
    description="API de controle de atendimentos, horas contratadas e importação de NFSe",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# All API routes live under /api
for _r in (auth, clients, supports, reports, status, prioridades, solicitantes, nfse, dashboard):
    app.include_router(_r.router, prefix="/api")


def seed_defaults():
    """Default admin and lookup rows on an empty database."""
    db = SessionLocal()
    try:
        if db.query(User).count() == 0:
            db.add(User(
                username=ADMIN_USERNAME,
                hashed_password=get_password_hash(ADMIN_PASSWORD),
                role=UserRole.admin,
            ))
            logger.info(f"Admin criado: {ADMIN_USERNAME}")
        if db.query(Status).count() == 0:
            db.add_all([Status(status=s) for s in DEFAULT_STATUS])
        if db.query(Prioridade).count() == 0:
            db.add_all([Prioridade(prioridade=p) for p in DEFAULT_PRIORIDADES])
        db.commit()
    finally:
        db.close()


@app.on_event("startup")
async def on_startup():
    seed_defaults()


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


# Serve the compiled React frontend (built by `npm run build`)
_DIST = os.path.join(os.path.dirname(__file__), "..", "frontend", "dist")

_assets = os.path.join(_DIST, "assets")
if os.path.isdir(_assets):
    app.mount("/assets", StaticFiles(directory=_assets), name="assets")


@app.get("/{full_path:path}", include_in_schema=False)
async def serve_spa(full_path: str):
    if full_path.startswith("api/"):
        return JSONResponse({"detail": "Not Found"}, status_code=404)
    fp = os.path.realpath(os.path.join(_DIST, full_path))
    if full_path and fp.startswith(os.path.realpath(_DIST) + os.sep) and os.path.isfile(fp):
        return FileResponse(fp)
    index = os.path.join(_DIST, "index.html")
    if os.path.isfile(index):
        return FileResponse(index)
    return {"message": "API do DB Support está funcionando!"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
