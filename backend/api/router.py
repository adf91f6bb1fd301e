from __future__ import annotations

from fastapi import APIRouter

from api.routes import applications, auth, companies, documents, messages, notifications, organizations, programs


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Role gates live on each route (api.deps.require_roles).
api_router.include_router(programs.router, prefix="/programs", tags=["programs"])
api_router.include_router(applications.router, prefix="/applications", tags=["applications"])
api_router.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
