from pydantic import BaseModel
from typing import Optional


class TokenData(BaseModel):
    """Token payload data"""
    user_id: Optional[str] = None
