"""Tool execution: validate arguments, dispatch to a collaborator, normalize the outcome."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from smarthire.agent.registry import (
    ApplyToJobArgs,
    ListMyApplicationsArgs,
    SearchJobsArgs,
    get_tool,
)
from smarthire.domain.ports import ApplicationListing, ApplyService, JobSearch
from smarthire.domain.types import CallerIdentity, JobSearchCriteria
from smarthire.errors import (
    AssistantError,
    ErrorKind,
    Forbidden,
    InvalidArguments,
    Unauthenticated,
    UnknownTool,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call: a JSON-ready payload or an error."""
    payload: Any = None
    error: ErrorKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, payload: Any) -> "ToolResult":
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: AssistantError) -> "ToolResult":
        return cls(payload=error.to_payload(), error=error.kind, message=error.message)

    def to_content(self) -> str:
        """JSON text sent back to the model."""
        return json.dumps(self.payload, ensure_ascii=False)


def _validation_message(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(f"{location}: {err['msg']}")
    return "; ".join(problems)


class ToolExecutor:
    """Runs tool calls against the recruiting collaborators.

    execute() never raises: every failure becomes a ToolResult error so one
    bad call cannot abort its siblings in the same round.
    """

    def __init__(
        self,
        job_search: JobSearch,
        apply_service: ApplyService,
        application_listing: ApplicationListing,
    ):
        self.job_search = job_search
        self.apply_service = apply_service
        self.application_listing = application_listing
        self._handlers = {
            "search_jobs": self._search_jobs,
            "apply_to_job": self._apply_to_job,
            "list_my_applications": self._list_my_applications,
        }

    async def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        caller: CallerIdentity | None,
    ) -> ToolResult:
        try:
            payload = await self._dispatch(tool_name, arguments, caller)
        except AssistantError as e:
            logger.warning(f"[{tool_name}] {e.kind.value}: {e.message}")
            return ToolResult.failure(e)
        except Exception as e:
            logger.error(f"[{tool_name}] Unexpected error: {e}", exc_info=True)
            return ToolResult.failure(AssistantError("The operation failed unexpectedly."))

        logger.info(f"[{tool_name}] ok")
        return ToolResult.success(payload)

    async def _dispatch(self, tool_name: str, arguments: dict[str, Any], caller: CallerIdentity | None) -> Any:
        tool = get_tool(tool_name)
        handler = self._handlers.get(tool_name)
        if tool is None or handler is None:
            raise UnknownTool(f"Unknown tool '{tool_name}'")

        if not isinstance(arguments, dict):
            raise InvalidArguments("Arguments must be a JSON object")
        try:
            args = tool.args_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidArguments(f"Invalid arguments: {_validation_message(e)}")

        if caller is None:
            raise Unauthenticated("You need to sign in to use this feature")

        return await handler(args, caller)

    async def _search_jobs(self, args: SearchJobsArgs, caller: CallerIdentity) -> Any:
        page = await self.job_search.search_jobs(JobSearchCriteria(**args.model_dump()))
        return page.model_dump(mode="json")

    async def _apply_to_job(self, args: ApplyToJobArgs, caller: CallerIdentity) -> Any:
        candidate_id = self._require_candidate(caller)
        record = await self.apply_service.apply(candidate_id, args.job_id)
        return record.model_dump(mode="json")

    async def _list_my_applications(self, args: ListMyApplicationsArgs, caller: CallerIdentity) -> Any:
        candidate_id = self._require_candidate(caller)
        records = await self.application_listing.list_applications(candidate_id, limit=args.limit)
        return {"applications": [r.model_dump(mode="json") for r in records]}

    @staticmethod
    def _require_candidate(caller: CallerIdentity) -> str:
        if not caller.candidate_id:
            raise Forbidden("Only candidates can use this feature")
        return caller.candidate_id
