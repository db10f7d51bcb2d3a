"""ASGI entrypoint: ``uvicorn auth_service.main:app``.

Importing this module reads configuration from the environment and fails
with :class:`~auth_service.errors.ConfigurationError` when the signing secret
or token TTLs are missing.
"""

from __future__ import annotations

from .config import get_settings
from .factory import create_app
from .logging_config import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

app = create_app(settings)


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
