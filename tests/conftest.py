from __future__ import annotations

import pytest

from stepcraft import dsl
from stepcraft.model import Pipeline
from stepcraft.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def scenario() -> Pipeline:
    """install -> test -> build, chained through depends_on."""
    return dsl.pipeline(
        dsl.command("Install", "npm ci", key="install", id="s1"),
        dsl.command("Test", "npm test", key="test", depends_on="install", id="s2"),
        dsl.command("Build", "npm run build", key="build", depends_on="test", id="s3"),
    )
