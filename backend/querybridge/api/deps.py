from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status

from querybridge.core import security
from querybridge.engines import QueryExecutor


def get_executor(request: Request) -> QueryExecutor:
    return request.app.state.executor


ExecutorDep = Annotated[QueryExecutor, Depends(get_executor)]


def verify_token(authorization: Annotated[str | None, Header()] = None) -> None:
    """Require a valid RS256 token when JWT_PUBLIC_KEY_PATH is configured."""
    key = security.verification_key()
    if key is None:
        return
    token = security.token_from_header(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )
    try:
        security.decode_access_token(token, key)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
