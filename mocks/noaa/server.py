"""
Mock NOAA GML server serving the daily Mauna Loa CO2 text feed.

Failure and latency can be toggled at runtime through ``/_control`` so the
proxy's timeout and stale-fallback paths can be exercised locally.
"""

import asyncio
from typing import Optional

from fastapi import FastAPI, Header
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from shared.logging import get_logger
from shared.test_helpers import SAMPLE_CO2_FEED

FEED_PATH = "/webdata/ccgg/trends/co2/co2_daily_mlo.txt"


class FaultSettings(BaseModel):
    """Runtime fault injection knobs."""
    status_code: int = 200
    delay_seconds: float = 0.0


class MockNoaaServer:
    """Mock upstream feed implementation."""

    def __init__(self, port: int = 8090, body: str = SAMPLE_CO2_FEED):
        self.port = port
        self.body = body
        self.logger = get_logger("mock.noaa")
        self.app = FastAPI(title="Mock NOAA GML", version="1.0.0")
        self.faults = FaultSettings()
        self.request_count = 0
        self.last_user_agent: Optional[str] = None

        self._setup_routes()

    def _setup_routes(self):
        """Set up API routes."""

        @self.app.get(FEED_PATH)
        async def daily_feed(user_agent: Optional[str] = Header(default=None)):
            self.request_count += 1
            self.last_user_agent = user_agent
            if self.faults.delay_seconds > 0:
                await asyncio.sleep(self.faults.delay_seconds)

            if self.faults.status_code != 200:
                self.logger.info("Injected upstream failure", status_code=self.faults.status_code)
                return PlainTextResponse("upstream failure", status_code=self.faults.status_code)

            return PlainTextResponse(self.body)

        @self.app.get("/_control")
        async def get_faults():
            return {"faults": self.faults.model_dump(), "request_count": self.request_count}

        @self.app.put("/_control")
        async def set_faults(faults: FaultSettings):
            self.faults = faults
            self.logger.info("Fault settings updated", **faults.model_dump())
            return {"faults": self.faults.model_dump()}


def create_app():
    """Create mock NOAA application."""
    server = MockNoaaServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
