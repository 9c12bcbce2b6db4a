# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependencies.

Settings and the Database are created by the application lifespan and
stored on app.state; these dependencies read them from the request.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.core.config import Settings
from educenter.infrastructure.database import Database


def get_settings(request: Request) -> Settings:
    """Get the application settings."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    """Get the application database.

    Raises:
        HTTPException: If the database was not initialized.
    """
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )
    return database


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request.

    Yields:
        AsyncSession committed when the request succeeds.
    """
    async with database.session() as session:
        yield session


def get_center_id(
    x_center_id: Annotated[
        int | None,
        Header(description="Center the request acts on", gt=0),
    ] = None,
) -> int:
    """Resolve the center from the X-Center-Id header.

    Raises:
        HTTPException: If the header is missing.
    """
    if x_center_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Center context required (X-Center-Id header)",
        )
    return x_center_id


def get_recorded_by(
    x_user: Annotated[str | None, Header(max_length=100)] = None,
) -> str | None:
    """Operator name from the X-User header, stored on payment transactions."""
    return x_user
