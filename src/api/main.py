import logging

from fastapi import FastAPI

from api.routers import ops, tasks, voice

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Rhythm voice intent engine")

app.include_router(voice.router)
app.include_router(tasks.router)
app.include_router(ops.router)
