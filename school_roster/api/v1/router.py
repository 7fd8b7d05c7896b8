# school_roster/api/v1/router.py
from fastapi import APIRouter
from school_roster.api.v1 import attendance, auth, fees, students, users

api_router = APIRouter()

api_router.include_router(auth.router,       prefix="/auth",       tags=["auth"])
api_router.include_router(users.router,      prefix="/users",      tags=["users"])
api_router.include_router(students.router,   prefix="/students",   tags=["students"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(fees.router,       prefix="/fees",       tags=["fees"])
