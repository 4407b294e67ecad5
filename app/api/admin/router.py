from fastapi import APIRouter
from app.api.admin import forms, stats, users

router = APIRouter()
router.include_router(stats.router, prefix="/stats", tags=["AdminStats"])
router.include_router(users.router, prefix="/users", tags=["AdminUsers"])
router.include_router(forms.router, prefix="/forms", tags=["AdminForms"])
