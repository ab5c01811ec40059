import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient

from coursehub.core import config
from coursehub.core.errors import register_error_handlers
from coursehub.courses.certificate_router import router as certificate_router
from coursehub.courses.course_router import router as course_router
from coursehub.courses.database import create_indexes
from coursehub.courses.functions_router import router as functions_router
from coursehub.courses.notification_router import router as notification_router
from coursehub.courses.review_router import router as review_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("coursehub")

app = FastAPI(title="CourseHub Learning API")

# MongoDB Configuration
client = AsyncIOMotorClient(config.MONGO_URL)
db = client[config.DATABASE_NAME]


@app.on_event("startup")
async def startup_event():
    missing = config.missing_settings()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))
    await create_indexes(db)
    logger.info("CourseHub API ready (database=%s)", config.DATABASE_NAME)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ==================== ROUTER REGISTRATION ====================
app.include_router(functions_router, prefix="/functions")
app.include_router(course_router, prefix="/courses")
app.include_router(certificate_router, prefix="/certificates")
app.include_router(notification_router, prefix="/notifications")
app.include_router(review_router, prefix="/reviews")
# ============================================================


@app.get("/health")
async def health():
    try:
        await db.command("ping")
        database = "UP"
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        database = "DOWN"
    return {"status": "ok" if database == "UP" else "degraded", "database": database}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("coursehub.main:app", host="0.0.0.0", port=8000)
