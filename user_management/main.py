import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from user_management import models  # noqa: F401  registers the tables on Base.metadata
from user_management.config import get_settings
from user_management.database import engine, Base
from user_management.exceptions import UserManagementError
from user_management.middleware.security_headers import SecurityHeadersMiddleware
from user_management.routers import patients, users

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s listening on port %s", settings.service_name, settings.port)
    yield
    await engine.dispose()


app = FastAPI(
    title="User Management Service",
    description="Users, patients, clinicians and bulk CSV import for the healthcare platform",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(UserManagementError)
async def user_management_error_handler(request: Request, exc: UserManagementError):
    body = {"detail": exc.reason}
    if exc.details:
        body["error"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not found",
                "message": f"Route {request.method} {request.url.path} not found",
                "service": settings.service_name,
            },
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "service": settings.service_name,
        },
    )


# Patients first so /patients/... is not captured by /{user_id}
app.include_router(patients.router, prefix="/api/v1/users/patients", tags=["Patients"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(users.router, prefix="/api/users", tags=["Users (legacy)"], include_in_schema=False)


@app.get("/health")
async def health_check():
    return {
        "ok": True,
        "ts": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name,
        "port": settings.port,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("user_management.main:app", host="0.0.0.0", port=settings.port)
