from datetime import datetime

from pydantic import BaseModel


class AccessTokenPayload(BaseModel):
    sub: str
    type: str
    org_id: int
    email: str
    iat: datetime
    exp: datetime
