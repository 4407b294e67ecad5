from fastapi import APIRouter
from app.api.owner import account, forms, uploads

router = APIRouter()
router.include_router(forms.router, prefix="/forms", tags=["Forms"])
router.include_router(account.router, prefix="/me", tags=["Account"])
router.include_router(uploads.router, prefix="/uploads", tags=["Files"])
