# Router aggregator – import each route module here and expose ``api_router``
# for convenient inclusion in the FastAPI app.

from fastapi import APIRouter

from . import (
    routes_analyses,
    routes_fal,
    routes_jobs,
    routes_outputs,
    routes_pdf,
)


api_router = APIRouter()
api_router.include_router(routes_fal.router, prefix="/fal", tags=["fal"])
api_router.include_router(routes_pdf.router, prefix="/pdf", tags=["pdf"])
api_router.include_router(routes_jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(routes_analyses.router, prefix="/analyses", tags=["analyses"])
api_router.include_router(routes_outputs.router, prefix="/outputs", tags=["outputs"])
