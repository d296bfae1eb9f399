"""API router aggregator."""

from fastapi import APIRouter, Depends

from cms.api.deps import rate_limit
from cms.api.v1 import auth, collections, media, public, roles, schema, settings, singletons, users
from cms.core.rate_limit import Bucket

router = APIRouter(prefix="/api/cms", dependencies=[Depends(rate_limit(Bucket.API))])
router.include_router(auth.router)
router.include_router(collections.router)
router.include_router(singletons.router)
router.include_router(public.router)
router.include_router(media.router)
router.include_router(users.router)
router.include_router(roles.router)
router.include_router(settings.router)
router.include_router(schema.router)
