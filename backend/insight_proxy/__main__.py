"""Run the proxy with uvicorn: ``python -m insight_proxy``."""
import uvicorn

from insight_proxy.core.config import get_settings


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("insight_proxy.main:app", host=settings.host, port=settings.port)
