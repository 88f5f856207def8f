import pytest


@pytest.fixture
def anyio_backend():
    # The storage layer uses aiofiles, which runs on asyncio only.
    return "asyncio"
