import asyncio
import inspect
import os
from collections.abc import Iterator
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from soma.config import override_runtime_env  # noqa: E402
from soma.db import dispose_engine  # noqa: E402
from soma.dependencies import get_app_config  # noqa: E402


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None
    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None
    fixtureinfo = getattr(pyfuncitem, "_fixtureinfo", None)
    if fixtureinfo is None:
        return None
    kwargs = {name: pyfuncitem.funcargs[name] for name in fixtureinfo.argnames}
    asyncio.run(test_func(**kwargs))
    return True


@pytest.fixture(autouse=True)
def _test_environment(tmp_path: Path) -> Iterator[None]:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "soma.db"

    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    os.environ["TRANSFER_BATCH_DELAY_MS"] = "0"
    os.environ.setdefault("LOG_LEVEL", "DEBUG")

    override_runtime_env(None)
    get_app_config.cache_clear()
    dispose_engine()
    try:
        yield
    finally:
        dispose_engine()
        get_app_config.cache_clear()
        override_runtime_env(None)
