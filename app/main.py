from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
import logging
import time

from .api.v1.auth import router as auth_router
from .api.v1.appointments import router as appointments_router
from .api.v1.doctors import router as doctors_router
from .api.v1.patients import router as patients_router
from .core.config import settings
from .core.database import init_db
from .core.error_handlers import register_exception_handlers

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Doctor/patient appointment booking with conflict-free scheduling",
    openapi_url="/api/v1/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not settings.TESTING:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=["localhost", "127.0.0.1", "*.localhost"]
    )

@app.middleware("http")
async def log_request_timing(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.4f}s")
    return response

register_exception_handlers(app)

for router in (auth_router, appointments_router, doctors_router, patients_router):
    app.include_router(router, prefix="/api/v1")

@app.on_event("startup")
async def create_tables():
    init_db()
    logger.info(f"{settings.APP_NAME} {settings.VERSION} ready")

@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
