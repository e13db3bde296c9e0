import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from pymongo.errors import PyMongoError

import catalog
from database import batch_relations_enabled, connect, database_url, get_db, setup_logging
from schemas import VideojuegoFilters

setup_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("videojuegos.api")

PUBLIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "public")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # No degraded mode: the process stops if the database is unreachable.
    url = database_url()
    if not url:
        logger.critical("DATABASE_URL is not set")
        raise SystemExit(1)
    try:
        client, db = connect(url)
    except PyMongoError as exc:
        logger.critical("Could not connect to MongoDB: %s", exc)
        raise SystemExit(1)
    app.state.client = client
    app.state.db = db
    try:
        yield
    finally:
        client.close()
        logger.info("MongoDB client closed")


app = FastAPI(title="Videojuegos Catalog API", version="1.0.0", lifespan=lifespan)

# CORS: allow the frontend URL if provided; if wildcard, don't allow credentials to satisfy browser rules
frontend_origin = os.getenv("FRONTEND_URL", "*")
allow_all = frontend_origin == "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin] if not allow_all else ["*"],
    allow_credentials=not allow_all,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"]
)

CSP = (
    "default-src 'self'; "
    "base-uri 'self'; "
    "img-src 'self' data:; "
    "style-src 'self' 'unsafe-inline'; "
    "script-src 'self'; "
    "connect-src 'self';"
)

@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Content-Security-Policy", CSP)
    return response

# Helpers
def serialize_doc(doc):
    """Render ObjectIds (top-level, nested and in lists) as hex strings."""
    return jsonable_encoder(doc, custom_encoder={ObjectId: str})

def server_error(exc: Exception) -> JSONResponse:
    logger.exception("Request failed: %s", exc)
    return JSONResponse(status_code=500, content={"error": "server error", "details": str(exc)})

def list_collection(db: Database, collection_name: str):
    try:
        return [serialize_doc(d) for d in catalog.list_all(db, collection_name)]
    except Exception as exc:
        return server_error(exc)

# Routes
@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    if db is None:
        return response

    response["database_name"] = getattr(db, "name", None)
    response["connection_status"] = "Connected"
    try:
        response["collections"] = sorted(db.list_collection_names())[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if database_url() else "❌ Not Set"
    return response

# Games
@app.get("/api/videojuegos")
def list_videojuegos(
    genero: Optional[str] = Query(None, description="Genre name, exact match"),
    plataforma: Optional[str] = Query(None, description="Platform name, exact match"),
    titulo: Optional[str] = Query(None, description="Case-insensitive title substring"),
    db: Database = Depends(get_db),
):
    try:
        criteria = VideojuegoFilters(genero=genero, plataforma=plataforma, titulo=titulo)
        games = catalog.search_games(db, criteria, batched=batch_relations_enabled())
        return [serialize_doc(g) for g in games]
    except Exception as exc:
        return server_error(exc)

# Reference collections
@app.get("/api/generos")
def list_generos(db: Database = Depends(get_db)):
    return list_collection(db, catalog.GENRES)

@app.get("/api/plataformas")
def list_plataformas(db: Database = Depends(get_db)):
    return list_collection(db, catalog.PLATFORMS)

@app.get("/api/desarrolladores")
def list_desarrolladores(db: Database = Depends(get_db)):
    return list_collection(db, catalog.DEVELOPERS)

# Static frontend, mounted last so it never shadows the API
if os.path.isdir(PUBLIC_DIR):
    app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")
else:
    @app.get("/")
    def read_root():
        return {"message": "Videojuegos Catalog API is running"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
