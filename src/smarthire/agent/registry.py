"""Tool declarations offered to the model."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchJobsArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str | None = Field(default=None, description="Free text matched against job title and description")
    modality: str | None = Field(default=None, description="Work modality, e.g. remote, hybrid, on-site")
    min_salary: int | None = Field(default=None, ge=0, description="Minimum acceptable salary")
    page: int = Field(default=1, ge=1, description="Result page, starting at 1")
    page_size: int = Field(default=5, ge=1, le=20, description="Results per page")


class ApplyToJobArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(min_length=1, description="Id of the job posting to apply to")


class ListMyApplicationsArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit: int = Field(default=10, ge=1, le=50, description="Maximum number of applications to return")


@dataclass(frozen=True)
class ToolSpec:
    """Definition of a tool for the model."""
    name: str
    description: str
    args_model: type[BaseModel]

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the arguments."""
        return self.args_model.model_json_schema()

    def to_anthropic_format(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="search_jobs",
        description=(
            "Search open job postings. Returns a page of postings with id, title, "
            "company, modality, schedule and salary range."
        ),
        args_model=SearchJobsArgs,
    ),
    ToolSpec(
        name="apply_to_job",
        description=(
            "Submit an application of the current candidate to a job posting. "
            "Only call this when the user explicitly asks to apply."
        ),
        args_model=ApplyToJobArgs,
    ),
    ToolSpec(
        name="list_my_applications",
        description="List the current candidate's applications, newest first, with status and compatibility.",
        args_model=ListMyApplicationsArgs,
    ),
)

_TOOLS_BY_NAME = {tool.name: tool for tool in TOOLS}


def declarations(caller_is_authenticated: bool) -> list[ToolSpec]:
    """Tools offered for a caller. Anonymous callers get none."""
    if not caller_is_authenticated:
        return []
    return list(TOOLS)


def get_tool(name: str) -> ToolSpec | None:
    return _TOOLS_BY_NAME.get(name)
