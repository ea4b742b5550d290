"""
Unit tests for action plan validation.

The validator is the only path from untrusted generator output to the
action loop, so these tests lean on the rejection side.
"""

import pytest

from sentinex.actions import (
    FsReadAction,
    HttpFetchAction,
    RespondAction,
    validate_action_plan,
)
from sentinex.errors import ActionPlanInvalidError


class TestValidPlans:
    def test_respond_action(self) -> None:
        plan = validate_action_plan({"actions": [{"type": "respond", "text": "hi"}]})

        assert len(plan.actions) == 1
        assert isinstance(plan.actions[0], RespondAction)
        assert plan.actions[0].text == "hi"

    def test_tool_actions_by_name(self) -> None:
        plan = validate_action_plan({
            "actions": [
                {"type": "tool", "tool": "http.fetch", "input": {"url": "https://example.com"}},
                {"type": "tool", "tool": "fs.read", "input": {"path": "./a.txt", "maxBytes": 10}},
            ]
        })

        fetch, read = plan.actions
        assert isinstance(fetch, HttpFetchAction)
        assert fetch.input.url == "https://example.com"
        assert isinstance(read, FsReadAction)
        assert read.input.max_bytes == 10

    def test_optional_limits(self) -> None:
        plan = validate_action_plan({
            "actions": [
                {
                    "type": "tool",
                    "tool": "http.fetch",
                    "input": {"url": "https://example.com", "timeoutMs": 250, "maxBytes": 1.5},
                }
            ]
        })

        action = plan.actions[0]
        assert action.input.timeout_ms == 250
        assert action.input.max_bytes == 1.5

    def test_empty_action_list_is_valid(self) -> None:
        assert validate_action_plan({"actions": []}).actions == []

    def test_order_is_preserved(self) -> None:
        plan = validate_action_plan({
            "actions": [{"type": "respond", "text": str(i)} for i in range(5)]
        })

        assert [a.text for a in plan.actions] == ["0", "1", "2", "3", "4"]

    def test_to_audit_uses_wire_names(self) -> None:
        plan = validate_action_plan({
            "actions": [
                {"type": "tool", "tool": "http.fetch", "input": {"url": "https://x.io", "timeoutMs": 5}}
            ]
        })

        assert plan.actions[0].to_audit() == {
            "type": "tool",
            "tool": "http.fetch",
            "input": {"url": "https://x.io", "timeoutMs": 5.0},
        }


class TestInvalidPlans:
    @pytest.mark.parametrize(
        "raw",
        [
            None,
            [],
            "actions",
            {},
            {"actions": "respond"},
            {"actions": [{"type": "respond"}]},
            {"actions": [{"type": "respond", "text": 3}]},
            {"actions": [{"type": "shout", "text": "hi"}]},
            {"actions": [{"text": "hi"}]},
            {"actions": [{"type": "tool", "tool": "exec", "input": {"cmd": "ls"}}]},
            {"actions": [{"type": "tool", "tool": "http.fetch", "input": {}}]},
            {"actions": [{"type": "tool", "tool": "http.fetch", "input": {"url": ""}}]},
            {"actions": [{"type": "tool", "tool": "http.fetch", "input": {"url": 42}}]},
            {"actions": [{"type": "tool", "tool": "fs.read", "input": {"path": ""}}]},
            {"actions": [{"type": "tool", "tool": "fs.read"}]},
        ],
    )
    def test_rejected(self, raw) -> None:
        with pytest.raises(ActionPlanInvalidError):
            validate_action_plan(raw)

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ActionPlanInvalidError):
            validate_action_plan({"actions": [{"type": "respond", "text": "hi", "extra": 1}]})
        with pytest.raises(ActionPlanInvalidError):
            validate_action_plan({
                "actions": [
                    {"type": "tool", "tool": "fs.read", "input": {"path": "a", "mode": "rb"}}
                ]
            })
        with pytest.raises(ActionPlanInvalidError):
            validate_action_plan({"actions": [], "notes": "x"})

    @pytest.mark.parametrize("value", [0, -1, True, False, "100", float("nan"), float("inf")])
    def test_limits_must_be_positive_numbers(self, value) -> None:
        with pytest.raises(ActionPlanInvalidError):
            validate_action_plan({
                "actions": [
                    {"type": "tool", "tool": "fs.read", "input": {"path": "a", "maxBytes": value}}
                ]
            })

    def test_one_bad_action_rejects_whole_plan(self) -> None:
        raw = {
            "actions": [
                {"type": "respond", "text": "fine"},
                {"type": "tool", "tool": "fs.read", "input": {}},
            ]
        }

        with pytest.raises(ActionPlanInvalidError) as exc_info:
            validate_action_plan(raw)

        assert exc_info.value.errors
        assert "Invalid action plan" in str(exc_info.value)

    def test_error_lists_location(self) -> None:
        with pytest.raises(ActionPlanInvalidError) as exc_info:
            validate_action_plan({
                "actions": [{"type": "tool", "tool": "http.fetch", "input": {"url": "https://x", "timeoutMs": -5}}]
            })

        assert any("timeoutMs" in e for e in exc_info.value.errors)
