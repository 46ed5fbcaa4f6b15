from prometheus_fastapi_instrumentator import Instrumentator

from savings_tracker.core.config import settings
from savings_tracker.core.logging import setup_logging

from . import app as _app

setup_logging()
app = _app
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


def run() -> None:
    import uvicorn

    uvicorn.run("savings_tracker.main:app", host=settings.HOST, port=settings.PORT)
