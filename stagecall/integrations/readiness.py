"""Readiness feed: client for the production-setup service's readiness endpoint.

GET {base_url}/api/projects/{id}/readiness returns
{"data": {<readiness counters>, "todoItems": [...]}}. The payload is loosely
typed upstream, so it is validated here and converted to ReadinessSnapshot
before anything else sees it. Any transport or shape problem means
"unavailable": fetch() logs a warning and returns None.
"""

from typing import Protocol, runtime_checkable

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stagecall.domain.action_items import ReadinessSnapshot, ReadinessTodo

logger = structlog.get_logger(__name__)


class ReadinessTodoPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    area: str = "general"
    priority: str = "important"
    title: str
    description: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value) if isinstance(value, int) else value


class ReadinessPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    roles_status: str = "default-only"
    locations_status: str = "default-only"
    total_staff_assigned: int = 0
    total_talent: int = 0
    escort_count: int = 0
    supervisor_count: int = 0
    coordinator_count: int = 0
    team_finalized: bool = False
    talent_finalized: bool = False
    roles_finalized: bool = False
    locations_finalized: bool = False
    overall_status: str = "getting-started"
    urgent_assignment_issues: int = 0
    todo_items: list[ReadinessTodoPayload] = Field(default_factory=list, alias="todoItems")

    def to_snapshot(self, project_id: str) -> ReadinessSnapshot:
        fields = self.model_dump(exclude={"todo_items"})
        return ReadinessSnapshot(
            project_id=project_id,
            todo_items=[ReadinessTodo(**todo.model_dump()) for todo in self.todo_items],
            **fields,
        )


class ReadinessEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: ReadinessPayload


@runtime_checkable
class ReadinessFeed(Protocol):
    async def fetch(self, project_id: str) -> ReadinessSnapshot | None:
        """Current readiness snapshot, or None when unavailable."""
        ...


class HttpReadinessFeed:
    """ReadinessFeed over HTTP.

    A transport can be injected (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, project_id: str) -> ReadinessSnapshot | None:
        url = f"/api/projects/{project_id}/readiness"
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                envelope = ReadinessEnvelope.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.warning("readiness_unavailable", project_id=project_id, error=str(exc))
            return None
        except ValidationError as exc:
            logger.warning("readiness_payload_invalid", project_id=project_id, errors=exc.error_count())
            return None
        except ValueError as exc:
            # Body was not JSON
            logger.warning("readiness_payload_invalid", project_id=project_id, error=str(exc))
            return None

        return envelope.data.to_snapshot(project_id)
