import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from wellness_api.api import (
    appointments_router, auth_router, doctors_router, labs_router,
    medicines_router, orders_router, search_router, upload_router, users_router,
)
from wellness_api.config import CORS_ORIGINS, LOG_LEVEL, UPLOAD_DIR, UPLOAD_URL_PREFIX
from wellness_api.database.connection import Base, engine
from wellness_api.errors import ServiceError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(
    title="Kashmir Wellness API",
    description="Medicines, doctors, labs, appointments and orders",
    version="1.0.0",
    lifespan=lifespan,
)

# Serve uploaded files
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %s %s: %s", request.method, request.url.path,
               exc.status_code, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "kind": exc.kind, "detail": exc.message},
    )


# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(medicines_router)
app.include_router(doctors_router)
app.include_router(labs_router)
app.include_router(appointments_router)
app.include_router(orders_router)
app.include_router(search_router)
app.include_router(upload_router)


@app.get("/")
async def root():
    return {
        "message": "Kashmir Wellness API",
        "status": "running",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/v1/auth",
            "users": "/api/v1/users",
            "medicines": "/api/v1/medicines",
            "doctors": "/api/v1/doctors",
            "labs": "/api/v1/labs",
            "appointments": "/api/v1/appointments",
            "orders": "/api/v1/orders",
            "search": "/api/v1/search/global",
            "upload": "/api/v1/upload",
            "docs": "/docs"
        }
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def run():
    uvicorn.run("wellness_api.main:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    run()
