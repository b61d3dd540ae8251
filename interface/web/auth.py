"""登录 token 签发与校验（JWT）

token 携带 role / username，默认 12 小时过期。
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt


def create_token(username: str, secret: str, role: str = "admin",
                 algorithm: str = "HS256", expire_hours: int = 12) -> str:
    exp = datetime.now(timezone.utc) + timedelta(hours=expire_hours)
    payload = {"sub": username, "username": username, "role": role, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[Dict[str, Any]]:
    """校验签名与有效期，失败返回 None"""
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None
