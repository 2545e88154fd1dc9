import hmac
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import ValidationError

from shadowit.core.settings import settings
from shadowit.dtos.token_dtos import AccessTokenPayload

ACCESS_TOKEN_TYPE = "access"


class TokenService:

    def create_access_token(
        self, email: str, org_id: int, expires_in_seconds: int = 3600
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": email,
            "type": ACCESS_TOKEN_TYPE,
            "org_id": org_id,
            "email": email,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in_seconds),
        }
        return jwt.encode(
            payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
        )

    def verify_access_token(self, token: str) -> AccessTokenPayload | None:
        try:
            payload = jwt.decode(
                token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
            )
            if payload.get("type") != ACCESS_TOKEN_TYPE:
                return None
            return AccessTokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        except ValidationError:
            return None

    def verify_cron_secret(self, token: str) -> bool:
        if not settings.cron_secret:
            return False
        return hmac.compare_digest(token.encode(), settings.cron_secret.encode())


token_service = TokenService()
