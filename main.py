from contextlib import asynccontextmanager

import asyncio
import logging
import os

import uvicorn

from fastapi import FastAPI

from messaging import config as messaging_config
from messaging.consumers import main_consumer
from shared.exceptions import NotFound, TeamError
from shared.exceptions_handler import not_found_exception_handler, team_error_handler, unhandled_exception_handler

from teams.routers import teams_router, team_members_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

logger = logging.getLogger("teams_service")

consumer_task = None


@asynccontextmanager
async def lifespan_manager(app: FastAPI):
    global consumer_task
    if messaging_config.TEAM_SYNC_CONSUMER_ENABLED:
        logger.info("Lifespan: starting team sync consumer")
        consumer_task = asyncio.create_task(main_consumer())
    else:
        logger.info("Lifespan: team sync consumer disabled")

    yield

    logger.info("Lifespan: shutting down, cancelling team sync consumer")
    if consumer_task and not consumer_task.done():
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            logger.info("Lifespan: team sync consumer cancelled")
    logger.info("Lifespan: shutdown complete")


app = FastAPI(lifespan=lifespan_manager)

app.include_router(teams_router.router)

app.include_router(team_members_router.router)

app.add_exception_handler(NotFound, not_found_exception_handler)
app.add_exception_handler(TeamError, team_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get("/health")
async def health_check():
    task_status = "not started or already finished"
    if consumer_task:
        if consumer_task.done():
            if consumer_task.cancelled():
                task_status = "cancelled"
            elif consumer_task.exception():
                task_status = f"failed: {consumer_task.exception()}"
            else:
                task_status = "finished"
        else:
            task_status = "running"

    return {
        "service": "teams_service",
        "status": "healthy_api",
        "consumer_task_status": task_status
    }

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8003")), proxy_headers=True)
