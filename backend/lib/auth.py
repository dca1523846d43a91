"""
Authentication for the roleplay API

Validates the Supabase access token sent as a Bearer header.
"""
from typing import Optional

from fastapi import HTTPException, Header
from dotenv import load_dotenv

from .supabase_client import get_supabase_client

load_dotenv()
load_dotenv('../.env')


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return token


async def get_current_user(authorization: Optional[str] = Header(None)):
    """
    Validate the access token and return the user.

    Returns:
        dict: {"id", "email"}

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    token = extract_bearer_token(authorization)

    try:
        supabase = get_supabase_client()
        user_response = supabase.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid or expired token")

        user = user_response.user
        return {"id": user.id, "email": user.email}

    except HTTPException:
        raise
    except Exception as e:
        print(f"Auth error: {e}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")
