"""
Config and diagnostics endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from core import store

from . import service

router = APIRouter()


@router.get("/api/config")
def get_config(response: Response) -> dict:
    result = service.public_config()
    response.headers["Cache-Control"] = "s-maxage=60, stale-while-revalidate=300"
    return result


@router.get("/api/debug/env")
def get_env_report() -> dict:
    return service.env_report()


@router.post("/api/diag/write")
async def post_write_probe(response: Response) -> dict:
    response.headers["Cache-Control"] = "no-store"
    missing = service.missing_service_env()
    if missing is not None:
        return missing
    return await service.write_probe(await store.service_store())
