from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel, Field

from job_engine.domain.context import JobContext
from job_engine.tasks.protocol import JobTask


class HttpCallTask(JobTask, BaseModel):
    """
    Task that makes an HTTP request using aiohttp.
    """
    url: str = Field(..., description="The URL to make the HTTP request to")
    method: str = Field("GET", description="The HTTP method to use (e.g. GET, POST, PUT, DELETE)")
    headers: Dict[str, str] = Field(default={}, description="Optional headers to include in the request")
    body: Optional[Dict[str, Any]] = Field(default=None, description="Optional JSON body for the request")
    params: Dict[str, str] = Field(default={}, description="Optional query parameters for the request")
    raise_for_status: bool = Field(default=True, description="Treat 4xx and 5xx responses as a failed attempt")

    @classmethod
    def task_type(cls) -> str:
        return "http_call"

    async def execute(self, ctx: JobContext) -> Dict[str, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.request(
                method=self.method,
                url=self.url,
                headers=self.headers,
                params=self.params,
                json=self.body,
            ) as response:
                if self.raise_for_status:
                    response.raise_for_status()
                return {
                    "status": response.status,
                    "headers": dict(response.headers),
                    "body": await response.text(),
                }

    def description(self) -> Optional[str]:
        return f"{self.method.upper()} {self.url}"
