"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from devcore.api.v1.endpoints import (admin, auth, clients, contact, developer,
                                      invite_codes, notifications,
                                      password_reset, projects, reports,
                                      settings, tasks, users)

api_router = APIRouter()

# Signup, login, re-auth, invite check, password reset
api_router.include_router(auth.router)
api_router.include_router(password_reset.router)

# Own profile
api_router.include_router(users.router)

# Administration, invite codes, system settings
api_router.include_router(admin.router)
api_router.include_router(invite_codes.router)
api_router.include_router(settings.router)

# Projects, client portal, tasks, developer workspace
api_router.include_router(projects.router)
api_router.include_router(clients.router)
api_router.include_router(tasks.router)
api_router.include_router(developer.router)

# Inbox and contact form
api_router.include_router(notifications.router)
api_router.include_router(contact.router)

# Reports, analytics, health
api_router.include_router(reports.router)
