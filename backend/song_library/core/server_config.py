"""
Server Configuration
====================
Uvicorn server configuration for development and production.
"""

from typing import Dict, Any

from song_library.core.config import settings


def get_uvicorn_config() -> Dict[str, Any]:
    """
    Get Uvicorn server configuration based on environment

    Returns:
        Dict[str, Any]: Uvicorn configuration parameters
    """
    config = {
        "app": "song_library.main:app",
        "host": settings.API_HOST,
        "port": settings.API_PORT,
        "log_config": None,  # loguru intercepts uvicorn logging
    }

    if settings.is_development:
        config.update({
            "reload": True,
            "reload_dirs": ["song_library"],
            "log_level": "debug",
            "access_log": True,
            "use_colors": True,
        })
    else:
        config.update({
            "reload": False,
            "workers": settings.API_WORKERS,
            "log_level": "info",
            "access_log": True,
            "use_colors": False,
            "proxy_headers": True,
            "forwarded_allow_ips": "*",
            "timeout_keep_alive": 5,
        })

    return config


def run() -> None:
    """Console entry point"""
    import uvicorn

    uvicorn.run(**get_uvicorn_config())
