from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from jointventure.core.config import settings
from jointventure.core.init_db import init_db
from jointventure.core.logger import logger
from jointventure.core.redis_lifecyle import init_redis_client, init_change_feed, close_redis
from jointventure.routes import api_router

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.PROJECT_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.EXTRA_CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.PROJECT_VERSION}


@app.on_event("startup")
async def startup_event():
    if settings.CREATE_TABLES_ON_STARTUP:
        await init_db()
        logger.info("Database tables ensured")
    await init_redis_client()
    feed = await init_change_feed()
    logger.info(f"{settings.PROJECT_NAME} started with {type(feed).__name__}")


@app.on_event("shutdown")
async def shutdown_event():
    await close_redis()
    logger.info(f"{settings.PROJECT_NAME} stopped")
