import uvicorn

from .app_factory import create_app
from .config import get_settings
from .observability.logging import setup_logging

setup_logging(get_settings().LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    S = get_settings()
    uvicorn.run("notewallet.main:app", host=S.APP_HOST, port=S.APP_PORT, reload=S.DEBUG)
