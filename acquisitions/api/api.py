"""
API router aggregator — wires all endpoint modules together.

Every route below passes request admission before anything else runs.
"""

from fastapi import APIRouter, Depends

from acquisitions.api.deps import admit_request
from acquisitions.api.endpoints import auth, meta, users
from acquisitions.core.config import settings

api_router = APIRouter(prefix=settings.API_PREFIX, dependencies=[Depends(admit_request)])

# Banner (GET /api)
api_router.add_api_route(
    "",
    meta.api_info,
    methods=["GET"],
    response_model=meta.ApiInfoResponse,
    tags=["meta"],
)

# Sign-up, sign-in, sign-out
api_router.include_router(auth.router)

# User CRUD
api_router.include_router(users.router)
