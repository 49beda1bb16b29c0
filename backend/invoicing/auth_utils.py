from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from invoicing.errors import AuthenticationError

ALGO = "HS256"

# --- Password hashing ---
_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return _pwd.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return _pwd.verify(plain, hashed)
    except ValueError:
        # malformed or foreign hash
        return False


# --- JWT ---
def create_access_token(
    secret: str, *, sub: str, user_id: int, tenant_id: int, ttl_seconds: int = 60 * 60 * 24,
) -> str:
    exp = int((datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)).timestamp())
    payload = {"sub": sub, "user_id": int(user_id), "tenant_id": int(tenant_id), "exp": exp}
    return jwt.encode(payload, secret, algorithm=ALGO)


def decode_access_token(secret: str, token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGO])
    except JWTError:
        raise AuthenticationError("Invalid token")
    if not payload.get("sub") or payload.get("user_id") is None or payload.get("tenant_id") is None:
        raise AuthenticationError("Invalid token payload")
    return payload
