# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixtures for API integration tests.

The app is driven through httpx's ASGI transport so requests run on the
test's event loop and share the in-memory database with the fixtures.
"""

from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from src.api.app import create_app
from src.api.dependencies import get_db


@pytest.fixture
def as_principal() -> Callable[[str, str], dict[str, str]]:
    """Build the headers the upstream identity layer forwards."""

    def _headers(subject_id: str, role: str) -> dict[str, str]:
        return {"X-Subject-Id": subject_id, "X-Subject-Role": role}

    return _headers


@pytest.fixture
def app(sessionmaker) -> FastAPI:
    """Application with its database dependency bound to the test engine."""
    app = create_app()

    async def _get_test_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the application."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
