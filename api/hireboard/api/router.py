from fastapi import APIRouter

from hireboard.api.routes import applications, health, jobs, notifications, profile

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
api_router.include_router(applications.router, prefix="/api/applications", tags=["applications"])
api_router.include_router(profile.router, prefix="/api/profile", tags=["profile"])
api_router.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
