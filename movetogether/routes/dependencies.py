from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from movetogether.database import Database
from movetogether.services.auth.security import SecurityService
from movetogether.services.backend.mongo import MongoCompetitionBackend

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

security_service = SecurityService()


async def get_database():
    """Database dependency"""
    return Database.get_db()


async def get_backend(db: AsyncIOMotorDatabase = Depends(get_database)) -> MongoCompetitionBackend:
    """Competition backend dependency"""
    return MongoCompetitionBackend(db)


async def get_current_user_id(
    token: Annotated[Optional[str], Depends(oauth2_scheme)]
) -> Optional[str]:
    """User id from the bearer token, or None when unauthenticated"""
    token_data = security_service.verify_token(token, "access")
    if token_data is None:
        return None
    return token_data.user_id
