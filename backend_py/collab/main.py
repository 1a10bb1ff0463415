from __future__ import annotations
import logging
import time
import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .db import Base, engine, SessionLocal, wait_for_db

# Import models so SQLAlchemy knows about all tables before create_all()
from . import models  # noqa: F401
from .routes import projects
from .services.repository import ProjectRepository
from .sockets import cors_origins, create_socket_server

log = logging.getLogger("uvicorn.error")

STARTED_AT = time.monotonic()

app = FastAPI(title="Diagram Collab API")


@app.on_event("startup")
def on_startup():
    # Wait until the database is accepting connections (handles container race)
    try:
        log.info("Waiting for database to be ready...")
        wait_for_db(max_tries=60, delay_seconds=1.0)
        log.info("Database is ready. Creating tables if they don't exist...")
        Base.metadata.create_all(bind=engine)
        log.info("Table creation complete.")
    except Exception as e:
        # Let Uvicorn crash early with a clear reason
        log.exception("Startup failed while preparing the database: %s", e)
        raise


_origins = cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if _origins == "*" else _origins,
    allow_credentials=_origins != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects.router, prefix="/api", tags=["projects"])


@app.get("/health")
def health():
    return {"status": "ok", "uptime": round(time.monotonic() - STARTED_AT, 3)}


# The hub is owned here, not by module state in the realtime package
sio, hub = create_socket_server(ProjectRepository(SessionLocal), origins=_origins)

# Socket.IO + FastAPI combined ASGI app
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
