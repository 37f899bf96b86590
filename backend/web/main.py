"""
coursedeck web entrypoint.

Why:
    Serves the course modules API that the client-side module cache treats as
    its source of truth. Run locally with `uvicorn web.main:app` from `backend/`.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from web.routes.modules import modules_router

app = FastAPI(title="coursedeck", description="Course module API", version="0.1.0")
app.include_router(modules_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
