from fastapi import APIRouter

from getwork.api.routes import applications, auth, health, jobs, notifications, profiles, recovery, referrals

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profiles.router, tags=["profiles"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(applications.router, prefix="/applications", tags=["applications"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["inbox"])
api_router.include_router(referrals.router, tags=["referrals"])
api_router.include_router(recovery.router, prefix="/proxy", tags=["legacy"])
