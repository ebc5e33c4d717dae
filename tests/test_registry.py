"""
Tests for the tool declarations.
"""

from smarthire.agent.registry import TOOLS, declarations, get_tool


def test_anonymous_caller_gets_no_tools():
    assert declarations(caller_is_authenticated=False) == []


def test_authenticated_caller_gets_all_tools():
    names = [tool.name for tool in declarations(caller_is_authenticated=True)]

    assert names == ["search_jobs", "apply_to_job", "list_my_applications"]


def test_tool_names_are_unique():
    names = [tool.name for tool in TOOLS]
    assert len(names) == len(set(names))


def test_apply_to_job_schema_requires_job_id():
    schema = get_tool("apply_to_job").parameters

    assert schema["type"] == "object"
    assert schema["required"] == ["job_id"]
    assert schema["additionalProperties"] is False


def test_search_jobs_schema_has_no_required_fields():
    schema = get_tool("search_jobs").parameters

    assert "required" not in schema
    assert set(schema["properties"]) == {"query", "modality", "min_salary", "page", "page_size"}


def test_anthropic_format():
    tool = get_tool("list_my_applications").to_anthropic_format()

    assert tool["name"] == "list_my_applications"
    assert tool["description"]
    assert tool["input_schema"]["properties"]["limit"]["maximum"] == 50


def test_unknown_tool_lookup():
    assert get_tool("delete_everything") is None
