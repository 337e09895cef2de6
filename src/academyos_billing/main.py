'''

'''
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .database.engine import create_db_engine_and_session_factory, create_schema, dispose_db_engine
from .common.exceptions import BillingError
from .common.logger import log
from .common.config import settings
from .api import (
    students, tuition_charges, payments, individual_lessons, lesson_sessions,
    pricing, discounts, student_discounts, ledger
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    create_db_engine_and_session_factory()
    if settings.TEST_MODE or settings.database_url.startswith("sqlite"):
        # throwaway databases have no migrations; build the tables directly
        await create_schema()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    if not settings.TEST_MODE:
        log.info("Application lifespan shutdown...")
        await dispose_db_engine()
    else:
        log.info("Skipping database engine disposal in TEST_MODE.")


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# --- Add CORS Middleware ---
origins = [
    # URL of testing frontend
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
]

# Extend with environment-specific origins
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],)
# --- End of CORS Middleware ---

@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    log.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.detail}
    )

@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(students.router)
app.include_router(tuition_charges.router)
app.include_router(payments.router)
app.include_router(individual_lessons.router)
app.include_router(lesson_sessions.router)
app.include_router(pricing.router)
app.include_router(discounts.router)
app.include_router(student_discounts.router)
app.include_router(ledger.router)
