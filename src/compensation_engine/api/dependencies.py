"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated, TypeVar

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.audit import Actor, AuditDispatcher, AuditedResult
from compensation_engine.database import Database
from compensation_engine.exceptions import PersistenceError

T = TypeVar("T")


def get_database(request: Request) -> Database:
    """Database handle created in the application lifespan."""
    return request.app.state.database


def get_dispatcher(request: Request) -> AuditDispatcher:
    """Audit dispatcher created in the application lifespan."""
    return request.app.state.audit_dispatcher


async def get_db_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Authenticated actor forwarded by the gateway in headers."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-ID header is required",
        )
    return Actor(id=x_actor_id, role=x_actor_role)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Dispatcher = Annotated[AuditDispatcher, Depends(get_dispatcher)]
CurrentActor = Annotated[Actor, Depends(get_actor)]


async def commit_audited(
    db: AsyncSession,
    dispatcher: AuditDispatcher,
    outcome: AuditedResult[T],
) -> T:
    """Commit the request transaction, then emit the outcome's audit entries.

    A failed commit is rolled back and reported as a PersistenceError
    carrying FAILURE copies of the entries.
    """
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError("Failed to commit changes", outcome.as_failures(str(e))) from e
    await dispatcher.dispatch(outcome.entries)
    return outcome.value
