"""FastAPI application for the fare engine."""

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fare_engine.api.endpoints import router
from fare_engine.config import settings
from fare_engine.errors import PricingError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(router)


@app.get("/")
async def root():
    return {
        "message": f"{settings.API_TITLE} API",
        "version": settings.API_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    uvicorn.run("fare_engine.main:app", host="0.0.0.0", port=8000, reload=True)
