"""
Handle-style lifecycle for embedding nanostats.

Mirrors a create/run/destroy interface: ``create`` builds the app,
``run`` blocks until it exits, ``destroy`` releases it. ``destroy`` may
be called after ``run`` returns or instead of ever calling ``run``.
"""

from dataclasses import replace

from nanostats.app import NanoStatsApp
from nanostats.config import NanoStatsConfig


def create(title: str, config: NanoStatsConfig | None = None) -> NanoStatsApp:
    """Create an application with the given title."""
    if config is None:
        config = NanoStatsConfig(title=title)
    else:
        config = replace(config, title=title)
    return NanoStatsApp(config)


def run(app: NanoStatsApp) -> None:
    """Run the application, blocking until it exits."""
    try:
        app.run()
    finally:
        app.cleanup()


def destroy(app: NanoStatsApp) -> None:
    """Release the application's resources."""
    app.cleanup()
