"""Main API router aggregating all endpoints."""

from fastapi import APIRouter

from catalog_search.api import routes

router = APIRouter()

router.include_router(routes.router, tags=["index"])
