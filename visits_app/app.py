import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

import models.event_listener  # noqa: F401
from core.catch_error_middleware import ErrorHandlerMiddleware
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from routes.agent_routes import router as agent_router
from routes.appointment_routes import router as appointment_router
from routes.notification_routes import router as notification_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.include_router(appointment_router, prefix="/v2")
app.include_router(agent_router, prefix="/v2")
app.include_router(notification_router, prefix="/v2")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)
