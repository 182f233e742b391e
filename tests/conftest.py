from __future__ import annotations

from collections.abc import Iterator

import pytest

from memories_backend.main import app


@pytest.fixture
def anyio_backend() -> str:
    # The uploader schedules notifications with asyncio tasks.
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_dependency_overrides() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    yield
    app.dependency_overrides.clear()
