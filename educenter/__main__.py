# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Run the billing API with uvicorn.

Host, port, workers and reload come from the API_* settings.

Usage:
    python -m educenter
    educenter-api
"""

from typing import Any

import uvicorn

from educenter.core.config import Settings, load_settings


def uvicorn_options(settings: Settings) -> dict[str, Any]:
    """Build uvicorn.run keyword arguments from settings.

    Reload runs a single process, so workers is only passed without it.
    """
    options: dict[str, Any] = {
        "factory": True,
        "host": settings.api.host,
        "port": settings.api.port,
        "reload": settings.api.reload,
        "log_level": settings.log_level.lower(),
    }
    if not settings.api.reload:
        options["workers"] = settings.api.workers
    return options


def main() -> None:
    """Start the API server."""
    uvicorn.run("educenter.api.app:create_app", **uvicorn_options(load_settings()))


if __name__ == "__main__":
    main()
