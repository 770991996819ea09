# app/graphql/router.py
from jose import JWTError, jwt
from strawberry.fastapi import GraphQLRouter, BaseContext
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .schema import schema
from ..db.session import get_db
from ..core.config import settings


class CustomContext(BaseContext):
    def __init__(self, db: Session, user: dict | None = None):
        super().__init__()
        self.db = db
        self.user = user


def get_context(request: Request, db: Session = Depends(get_db)) -> CustomContext:
    """
    Reads the bearer token forwarded by the gateway. An invalid or missing
    token leaves user as None; resolvers that need a caller raise
    Unauthenticated.
    """
    auth_header = request.headers.get("Authorization")
    user = None

    if auth_header:
        try:
            token = auth_header.split(" ")[1]
            if token:
                user = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        except (JWTError, IndexError):
            user = None

    return CustomContext(db=db, user=user)


graphql_router = GraphQLRouter(
    schema,
    context_getter=get_context,
)
