import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripwise.api.routers.schedule import router as schedule_router
from tripwise.core.settings import get_settings

load_dotenv()


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    application = FastAPI(title="Tripwise Schedule Engine")

    # CORS: localhost frontends for development
    allowed_origins = [
        "http://localhost:3456",
        "http://localhost:5173",
        "http://127.0.0.1:3456",
        "http://127.0.0.1:5173",
    ]

    # Add production origins from environment if set
    # e.g. ALLOWED_ORIGINS=https://app.example.com,https://staging.example.com
    if settings.allowed_origins:
        allowed_origins.extend(
            [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.include_router(schedule_router)
    return application


app = create_app()
