from __future__ import annotations
import logging
import os
import uvicorn
from lfs_finder.infrastructure.config import get_settings

def main() -> None:
    """Start the uvicorn ASGI server."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger(__name__).info(
        "Configured credentials: %d, marker: %r, config file: %s",
        len(settings.token_list()),
        settings.marker,
        settings.config_filename,
    )
    uvicorn.run(
        "lfs_finder.interface.app:create_app",
        factory=True,
        host=os.environ.get("HOST", settings.host),
        port=int(os.environ.get("PORT", settings.port)),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
