"""
Identity-related Pydantic schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Verified bearer token claims."""

    sub: int  # User ID
    exp: datetime
    email: Optional[str] = None
