"""Basic smoke tests for scaffolding."""

from snapshelf import __version__
from snapshelf.server import create_app


def test_app_exposes_version() -> None:
    application = create_app()

    assert application.version == __version__
    application.state.store.close()
