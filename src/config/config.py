import os
from typing import Optional

import httpx


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Configuration class for environment variables and default settings.
    """

    # Routing layer
    LB_LISTEN_PORT = int(os.environ.get("LB_LISTEN_PORT", "80"))
    LB_FORWARD_PORT = int(os.environ.get("LB_FORWARD_PORT", "5000"))
    # Comma separated list, e.g. "http://10.0.1.10:5000,http://10.0.2.10:5000"
    LB_BACKENDS = os.environ.get("LB_BACKENDS", "")
    LB_PROBE_INTERVAL = float(os.environ.get("LB_PROBE_INTERVAL", "30"))
    LB_PROBE_TIMEOUT = float(os.environ.get("LB_PROBE_TIMEOUT", "3"))
    LB_UNHEALTHY_THRESHOLD = int(os.environ.get("LB_UNHEALTHY_THRESHOLD", "3"))
    LB_HEALTHY_THRESHOLD = int(os.environ.get("LB_HEALTHY_THRESHOLD", "2"))
    LB_FORWARD_TIMEOUT = float(os.environ.get("LB_FORWARD_TIMEOUT", "10"))
    LB_RETRY_ON_CONNECT_ERROR = _env_bool("LB_RETRY_ON_CONNECT_ERROR")

    # Load balancer class selection
    LOAD_BALANCER_CLASS = os.environ.get("LOAD_BALANCER_CLASS", "round_robin")

    # Backend instance
    BACKEND_PORT = os.environ.get("BACKEND_PORT", "5000")
    BACKEND_HOST = os.environ.get("BACKEND_HOST")
    # Prefer BACKEND_URL if set, else construct from BACKEND_HOST and BACKEND_PORT, else default to localhost
    BACKEND_URL = os.environ.get(
        "BACKEND_URL",
        (
            f"http://{BACKEND_HOST}:{BACKEND_PORT}"
            if BACKEND_HOST
            else f"http://localhost:{BACKEND_PORT}"
        ),
    )
    BACKEND_MESSAGE = os.environ.get("BACKEND_MESSAGE", "Hello from backend")
    BACKEND_HEALTH_PATH = os.environ.get("BACKEND_HEALTH_PATH", "/health")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Frontend
    FRONTEND_API_URL = os.environ.get("FRONTEND_API_URL", "http://localhost:80")
    FRONTEND_PORT = int(os.environ.get("FRONTEND_PORT", "3000"))
    FRONTEND_TIMEOUT = float(os.environ.get("FRONTEND_TIMEOUT", "5"))

    @classmethod
    def backend_urls(cls) -> list[str]:
        """
        Parse LB_BACKENDS into normalised base URLs.

        Entries without a scheme get ``http://``; entries without a port get
        LB_FORWARD_PORT.
        """
        urls = []
        for raw in cls.LB_BACKENDS.split(","):
            if not raw.strip():
                continue
            entry = cls.normalize_backend_url(raw)
            if entry not in urls:
                urls.append(entry)
        return urls

    @classmethod
    def normalize_backend_url(cls, url: str, port: Optional[int] = None) -> str:
        """
        Turn a backend address into the base URL used to probe and forward to it.

        A missing scheme becomes ``http://``. A missing port becomes ``port``, or
        LB_FORWARD_PORT when ``port`` is not given. A port already in the URL is kept.
        """
        entry = url.strip().rstrip("/")
        if "://" not in entry:
            entry = f"http://{entry}"
        parsed = httpx.URL(entry)
        if parsed.port is None:
            parsed = parsed.copy_with(port=port or cls.LB_FORWARD_PORT)
        return str(parsed).rstrip("/")

    @classmethod
    def cors_origins(cls) -> list[str]:
        return [o.strip() for o in cls.CORS_ORIGINS.split(",") if o.strip()]
