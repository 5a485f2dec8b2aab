from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from filebox.core.database import get_db
from filebox.api.deps import get_current_admin
from filebox.repositories.file import FileRepository
from filebox.repositories.share import ShareRepository
from filebox.repositories.user import UserRepository
from filebox.schemas.admin import Stats
from filebox.schemas.user import User
from filebox.utils.time import utcnow

router = APIRouter()


@router.get("/stats", response_model=Stats)
async def get_stats(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """User, file and share counts"""
    share_repo = ShareRepository(db)
    return Stats(
        users=await UserRepository(db).count(),
        files=await FileRepository(db).count(),
        shares=await share_repo.count(),
        active_shares=await share_repo.count_active(utcnow())
    )
