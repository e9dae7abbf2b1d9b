from fastapi import APIRouter

from academy.modules.applications.admin_router import router as admin_applications_router
from academy.modules.applications.router import router as applications_router
from academy.modules.profiles.router import router as profiles_router

api_router = APIRouter()

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(
    admin_applications_router,
    prefix="/admin/applications",
    tags=["Admin - Applications"],
)

api_router.include_router(profiles_router, prefix="/profiles", tags=["Profiles"])
