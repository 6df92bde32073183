"""
Tests for conversation-to-payload conversion.
"""

import pytest

from antigravity_bridge.constants import (
    CLAUDE_THINKING_MAX_OUTPUT_TOKENS,
    TOOL_DISABLED_INSTRUCTION,
    TOOL_ENABLED_INSTRUCTION,
    WARMUP_PROMPT,
)
from antigravity_bridge.model_resolver import resolve_model
from antigravity_bridge.request_builder import (
    append_system_instruction_text,
    apply_generation_options,
    apply_model_transforms,
    build_request_payload,
    build_tools,
    build_warmup_payload,
    convert_messages,
    enforce_tool_pairing,
    ensure_claude_thinking_tool_history,
    has_tool_calls,
    inject_cached_thinking_signature,
    sanitize_tool_name,
)
from antigravity_bridge.signature_cache import ThoughtSignature
from antigravity_bridge.types import (
    ChatRequestOptions,
    Message,
    TextPart,
    ThinkingPart,
    ToolCallPart,
    ToolDeclaration,
    ToolMode,
    ToolResultPart,
)


def call(call_id, name="read_file", **extra):
    return {"functionCall": {"name": name, "args": {}, "id": call_id}, **extra}


def result(call_id, name="read_file"):
    return {"functionResponse": {"name": name, "id": call_id, "response": {"content": "ok"}}}


READ_CALL = ToolCallPart("call-1", "read_file", {"path": "a.txt"})
READ_RESULT = ToolResultPart("call-1", (TextPart("hello"),))

EXPECTED_CALL_TURN = {
    "role": "model",
    "parts": [{"functionCall": {"name": "read_file", "args": {"path": "a.txt"}, "id": "call-1"}}],
}
EXPECTED_RESULT_TURN = {
    "role": "user",
    "parts": [
        {
            "functionResponse": {
                "name": "read_file",
                "id": "call-1",
                "response": {"content": "hello"},
            }
        }
    ],
}


class TestConvertMessages:
    """Test role mapping and part conversion."""

    def test_assistant_tool_result_moves_to_user_turn(self):
        """A call and its result in one assistant message become two turns."""
        converted = convert_messages([Message.assistant(READ_CALL, READ_RESULT)])
        assert converted.contents == [EXPECTED_CALL_TURN, EXPECTED_RESULT_TURN]

    def test_call_followed_by_result_message(self):
        converted = convert_messages([Message.assistant(READ_CALL), Message.user(READ_RESULT)])
        assert converted.contents == [EXPECTED_CALL_TURN, EXPECTED_RESULT_TURN]

    def test_system_messages_concatenated_in_order(self):
        converted = convert_messages(
            [Message.system("A"), Message.user("hi"), Message.system("B")]
        )

        assert converted.system_instruction == {"parts": [{"text": "A"}, {"text": "B"}]}
        assert converted.contents == [{"role": "user", "parts": [{"text": "hi"}]}]

    def test_empty_text_parts_skipped(self):
        converted = convert_messages([Message.user("", "hello")])
        assert converted.contents == [{"role": "user", "parts": [{"text": "hello"}]}]

    def test_result_for_unknown_call(self):
        """Results for calls not in the history get a generic name."""
        converted = convert_messages([Message.user(ToolResultPart("ghost"))])

        response = converted.contents[0]["parts"][0]["functionResponse"]
        assert response == {"name": "tool", "id": "ghost", "response": {}}

    def test_multiple_result_items_joined(self):
        converted = convert_messages(
            [
                Message.assistant(READ_CALL),
                Message.user(ToolResultPart("call-1", (TextPart("a"), "b"))),
            ]
        )
        response = converted.contents[1]["parts"][0]["functionResponse"]["response"]
        assert response == {"content": "a\nb"}

    def test_tool_history_omitted_when_disallowed(self):
        converted = convert_messages(
            [Message.user("hi"), Message.assistant(READ_CALL, READ_RESULT)],
            allow_tool_history=False,
        )
        assert converted.contents == [{"role": "user", "parts": [{"text": "hi"}]}]

    def test_thinking_in_user_message_ignored(self, session):
        session.record_thought("plan", "sig-1", "gemini")
        converted = convert_messages(
            [Message.user(ThinkingPart("plan", "sig-1"), "hi")], session=session
        )
        assert converted.contents == [{"role": "user", "parts": [{"text": "hi"}]}]


class TestSignatureReplay:
    """Test how session signatures are attached to replayed history."""

    def test_call_reuses_its_recorded_signature(self, session):
        session.record_call_signature("call-1", "sig-call", "gemini")
        converted = convert_messages([Message.assistant(READ_CALL)], session=session)

        assert converted.contents[0]["parts"][0]["thoughtSignature"] == "sig-call"

    def test_signature_from_other_family_not_attached(self, session):
        session.record_call_signature("call-1", "sig-claude", "claude")
        converted = convert_messages(
            [Message.assistant(READ_CALL)], session=session, family="gemini"
        )

        assert "thoughtSignature" not in converted.contents[0]["parts"][0]

    def test_fallback_only_on_first_unsigned_call(self, session):
        session.record_thought("thinking", "sig-last", "claude")
        converted = convert_messages(
            [
                Message.assistant(
                    ToolCallPart("a", "one"), ToolCallPart("b", "two")
                )
            ],
            session=session,
            family="claude",
            allow_fallback_signature=True,
        )

        parts = converted.contents[0]["parts"]
        assert parts[0]["thoughtSignature"] == "sig-last"
        assert "thoughtSignature" not in parts[1]

    def test_no_fallback_without_permission(self, session):
        session.record_thought("thinking", "sig-last", "claude")
        converted = convert_messages(
            [Message.assistant(ToolCallPart("a", "one"))], session=session, family="claude"
        )
        assert "thoughtSignature" not in converted.contents[0]["parts"][0]

    def test_trusted_thinking_block_replayed(self, session):
        session.record_thought("I think", "sig-1", "claude")
        converted = convert_messages(
            [Message.assistant(ThinkingPart("I think", "sig-1"), "answer")],
            session=session,
            family="claude",
        )

        assert converted.contents[0]["parts"] == [
            {"thought": True, "text": "I think", "thoughtSignature": "sig-1"},
            {"text": "answer"},
        ]

    def test_unsigned_thinking_block_restored_from_cache(self, session):
        session.record_thought("I think", "sig-1", "claude")
        converted = convert_messages(
            [Message.assistant(ThinkingPart("I think"))], session=session, family="claude"
        )
        assert converted.contents[0]["parts"][0]["thoughtSignature"] == "sig-1"

    def test_foreign_signature_dropped(self, session):
        """A signature this session never received is not forwarded."""
        session.record_thought("I think", "sig-1", "claude")
        converted = convert_messages(
            [Message.assistant(ThinkingPart("Other thought", "forged"), "answer")],
            session=session,
            family="claude",
        )
        assert converted.contents[0]["parts"] == [{"text": "answer"}]

    def test_thinking_dropped_without_session(self):
        converted = convert_messages(
            [Message.assistant(ThinkingPart("I think", "sig-1"), "answer")]
        )
        assert converted.contents[0]["parts"] == [{"text": "answer"}]


class TestToolPairing:
    """Test strict call/result adjacency."""

    def test_unanswered_call_dropped(self):
        contents = [
            {"role": "model", "parts": [call("a"), call("b")]},
            {"role": "user", "parts": [result("a")]},
        ]

        assert enforce_tool_pairing(contents) == [
            {"role": "model", "parts": [call("a")]},
            {"role": "user", "parts": [result("a")]},
        ]

    def test_orphaned_result_dropped(self):
        contents = [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "user", "parts": [result("z")]},
        ]
        assert enforce_tool_pairing(contents) == [{"role": "user", "parts": [{"text": "hi"}]}]

    def test_result_must_be_adjacent(self):
        contents = [
            {"role": "model", "parts": [{"text": "calling"}, call("a")]},
            {"role": "user", "parts": [{"text": "wait"}]},
            {"role": "user", "parts": [result("a")]},
        ]

        assert enforce_tool_pairing(contents) == [
            {"role": "model", "parts": [{"text": "calling"}]},
            {"role": "user", "parts": [{"text": "wait"}]},
        ]

    def test_text_alongside_results_kept(self):
        contents = [
            {"role": "model", "parts": [call("a")]},
            {"role": "user", "parts": [result("a"), result("x"), {"text": "done"}]},
        ]

        assert enforce_tool_pairing(contents)[1] == {
            "role": "user",
            "parts": [result("a"), {"text": "done"}],
        }

    def test_input_not_modified(self):
        contents = [{"role": "model", "parts": [call("a")]}]
        enforce_tool_pairing(contents)
        assert contents == [{"role": "model", "parts": [call("a")]}]


class TestClaudeThinkingHistory:
    """Test reasoning-first ordering of model turns."""

    def test_thought_moved_first(self):
        thought = {"thought": True, "text": "plan", "thoughtSignature": "sig"}
        contents = [{"role": "model", "parts": [{"text": "answer"}, thought]}]

        result_contents = ensure_claude_thinking_tool_history(contents, None)
        assert result_contents[0]["parts"] == [thought, {"text": "answer"}]

    def test_cached_thought_prepended_to_tool_turn(self):
        cached = ThoughtSignature("plan", "sig-c", "claude")
        contents = [{"role": "model", "parts": [call("a")]}]

        result_contents = ensure_claude_thinking_tool_history(contents, cached)
        assert result_contents[0]["parts"] == [
            {"thought": True, "text": "plan", "thoughtSignature": "sig-c"},
            call("a"),
        ]

    def test_plain_text_turn_untouched(self):
        cached = ThoughtSignature("plan", "sig-c", "claude")
        contents = [{"role": "model", "parts": [{"text": "answer"}]}]
        assert ensure_claude_thinking_tool_history(contents, cached) == contents


class TestTools:
    def test_missing_schema_gets_placeholder(self):
        tools = build_tools([ToolDeclaration("ping")])

        declaration = tools[0]["functionDeclarations"][0]
        assert declaration["name"] == "ping"
        assert declaration["description"] == ""
        assert declaration["parameters"]["type"] == "object"
        assert declaration["parameters"]["required"] == ["_placeholder"]

    def test_no_declarations(self):
        assert build_tools([]) is None

    def test_sanitize_tool_name(self):
        assert sanitize_tool_name("my.tool/v2") == "my_tool_v2"
        assert len(sanitize_tool_name("x" * 100)) == 64

    def test_has_tool_calls(self):
        assert has_tool_calls({"contents": [{"role": "model", "parts": [call("a")]}]})
        assert not has_tool_calls({"contents": [{"role": "user", "parts": [{"text": "hi"}]}]})


class TestGenerationOptions:
    def test_numeric_options_and_stop_sequences(self):
        payload = {}
        apply_generation_options(
            payload,
            {
                "temperature": 0.2,
                "top_p": 0.9,
                "topK": "40",
                "maxOutputTokens": True,
                "stopSequences": ["END"],
                "seed": 7,
            },
        )

        assert payload["generationConfig"] == {
            "temperature": 0.2,
            "topP": 0.9,
            "stopSequences": ["END"],
        }

    def test_no_options_leaves_payload_alone(self):
        payload = {"contents": []}
        apply_generation_options(payload, {})
        assert payload == {"contents": []}

    def test_append_to_plain_string_instruction(self):
        payload = {"systemInstruction": "Be brief"}
        append_system_instruction_text(payload, "Use tools")
        assert payload["systemInstruction"] == "Be brief\n\nUse tools"


class TestBuildRequestPayload:
    """Test payload assembly per quota family."""

    def test_antigravity_system_instruction_has_user_role(self):
        payload = build_request_payload(
            resolve_model("claude-sonnet-4-5"),
            [Message.system("Be brief"), Message.user("hi")],
        )

        assert payload["systemInstruction"] == {
            "role": "user",
            "parts": [{"text": f"Be brief\n\n{TOOL_DISABLED_INSTRUCTION}"}],
        }

    def test_tool_instruction_reflects_tools(self, search_tool_schema):
        payload = build_request_payload(
            resolve_model("gemini-2.5-flash"),
            [Message.user("hi")],
            ChatRequestOptions(tools=[ToolDeclaration("search", "Search", search_tool_schema)]),
        )
        assert payload["systemInstruction"] == {"parts": [{"text": TOOL_ENABLED_INSTRUCTION}]}

    def test_tool_instructions_can_be_disabled(self):
        payload = build_request_payload(
            resolve_model("gemini-2.5-flash"), [Message.user("hi")], tool_instructions=False
        )

        assert payload == {"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}

    def test_gemini_cli_schemas_upper_cased(self, search_tool_schema):
        payload = build_request_payload(
            resolve_model("gemini-2.5-flash"),
            [Message.user("hi")],
            ChatRequestOptions(tools=[ToolDeclaration("search", "Search", search_tool_schema)]),
        )

        parameters = payload["tools"][0]["functionDeclarations"][0]["parameters"]
        assert parameters["type"] == "OBJECT"
        assert parameters["properties"]["query"]["type"] == "STRING"
        assert parameters["properties"]["paths"]["items"]["type"] == "STRING"

    def test_antigravity_schemas_keep_lower_case(self, search_tool_schema):
        payload = build_request_payload(
            resolve_model("antigravity-gemini-3-flash"),
            [Message.user("hi")],
            ChatRequestOptions(tools=[ToolDeclaration("search", "Search", search_tool_schema)]),
        )

        parameters = payload["tools"][0]["functionDeclarations"][0]["parameters"]
        assert parameters["type"] == "object"

    def test_gemini_cli_enforces_pairing(self):
        payload = build_request_payload(
            resolve_model("gemini-2.5-flash"),
            [Message.user("read it"), Message.assistant(READ_CALL)],
            tool_instructions=False,
        )
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "read it"}]}]

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("gemini-2.5-flash", {"functionCallingConfig": {"mode": "ANY"}}),
            ("claude-sonnet-4-5", None),
        ],
    )
    def test_required_tool_mode(self, model, expected):
        payload = build_request_payload(
            resolve_model(model),
            [Message.user("hi")],
            ChatRequestOptions(tools=[ToolDeclaration("ping")], tool_mode=ToolMode.REQUIRED),
        )
        assert payload.get("toolConfig") == expected

    def test_claude_fallback_signature(self, session):
        session.record_thought("thinking", "sig-last", "claude")
        messages = [Message.user("go"), Message.assistant(READ_CALL, READ_RESULT)]

        payload = build_request_payload(
            resolve_model("claude-sonnet-4-5"), messages, session=session
        )
        assert payload["contents"][1]["parts"][0]["thoughtSignature"] == "sig-last"

        payload = build_request_payload(
            resolve_model("claude-sonnet-4-5"),
            messages,
            session=session,
            fallback_signature=False,
        )
        assert "thoughtSignature" not in payload["contents"][1]["parts"][0]

    def test_gemini_never_uses_fallback(self, session):
        session.record_thought("thinking", "sig-last", "gemini")
        payload = build_request_payload(
            resolve_model("gemini-2.5-flash"),
            [Message.user("go"), Message.assistant(READ_CALL, READ_RESULT)],
            session=session,
        )
        assert "thoughtSignature" not in payload["contents"][1]["parts"][0]


class TestModelTransforms:
    """Test family-specific reasoning and tool configuration."""

    def test_claude_thinking(self):
        payload = {
            "contents": [],
            "tools": [
                {"functionDeclarations": [{"name": "my.tool", "description": "", "parameters": {}}]}
            ],
            "generationConfig": {"stop_sequences": ["X"]},
        }
        apply_model_transforms(payload, resolve_model("claude-sonnet-4-5-thinking"))

        assert payload["toolConfig"] == {"functionCallingConfig": {"mode": "VALIDATED"}}
        generation_config = payload["generationConfig"]
        assert generation_config["stopSequences"] == ["X"]
        assert "stop_sequences" not in generation_config
        assert generation_config["thinkingConfig"] == {
            "include_thoughts": True,
            "thinking_budget": 32768,
        }
        assert generation_config["maxOutputTokens"] == CLAUDE_THINKING_MAX_OUTPUT_TOKENS
        declaration = payload["tools"][0]["functionDeclarations"][0]
        assert declaration["name"] == "my_tool"
        assert declaration["parameters"]["type"] == "object"

    def test_claude_larger_max_tokens_kept(self):
        payload = {"contents": [], "generationConfig": {"maxOutputTokens": 100000}}
        apply_model_transforms(payload, resolve_model("claude-opus-4-6-thinking"))
        assert payload["generationConfig"]["maxOutputTokens"] == 100000

    def test_claude_without_thinking(self):
        payload = {"contents": []}
        apply_model_transforms(payload, resolve_model("claude-sonnet-4-5"))

        assert payload == {
            "contents": [],
            "toolConfig": {"functionCallingConfig": {"mode": "VALIDATED"}},
        }

    def test_gemini3_thinking_level(self):
        payload = {"contents": []}
        apply_model_transforms(payload, resolve_model("antigravity-gemini-3-pro"))

        assert payload["generationConfig"]["thinkingConfig"] == {
            "includeThoughts": True,
            "thinkingLevel": "low",
        }

    def test_gemini25_budget(self):
        payload = {"contents": []}
        apply_model_transforms(payload, resolve_model("gemini-2.5-flash-high"))

        assert payload["generationConfig"]["thinkingConfig"] == {
            "includeThoughts": True,
            "thinkingBudget": 24576,
        }

    def test_gemini25_default_budget(self):
        payload = {"contents": []}
        apply_model_transforms(payload, resolve_model("gemini-2.5-flash"), 1234)
        assert payload["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 1234

    def test_non_thinking_gemini_untouched(self):
        payload = {"contents": []}
        apply_model_transforms(payload, resolve_model("my-model"))
        assert payload == {"contents": []}


class TestSignatureInjection:
    """Test priming replayed Gemini 3 tool turns with a cached thought."""

    def test_unsigned_calls_get_cached_signature(self):
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": "go"}]},
                {"role": "model", "parts": [call("a")]},
                {"role": "user", "parts": [result("a")]},
            ]
        }
        inject_cached_thinking_signature(payload, ThoughtSignature("plan", "sig-w", "gemini"))

        assert payload["contents"][1]["parts"] == [
            {"thought": True, "text": "plan", "thoughtSignature": "sig-w"},
            call("a", thoughtSignature="sig-w"),
        ]
        assert payload["contents"][2] == {"role": "user", "parts": [result("a")]}

    def test_signed_calls_and_thoughts_kept(self):
        thought = {"thought": True, "text": "mine", "thoughtSignature": "sig-own"}
        payload = {
            "contents": [
                {"role": "model", "parts": [thought, call("a", thoughtSignature="sig-own")]}
            ]
        }
        inject_cached_thinking_signature(payload, ThoughtSignature("plan", "sig-w", "gemini"))

        assert payload["contents"][0]["parts"] == [
            thought,
            call("a", thoughtSignature="sig-own"),
        ]

    def test_nothing_cached(self):
        payload = {"contents": [{"role": "model", "parts": [call("a")]}]}
        inject_cached_thinking_signature(payload, None)
        assert payload == {"contents": [{"role": "model", "parts": [call("a")]}]}


def test_warmup_payload():
    payload = build_warmup_payload(resolve_model("antigravity-gemini-3-pro-high"))

    assert payload["contents"] == [{"role": "user", "parts": [{"text": WARMUP_PROMPT}]}]
    assert payload["generationConfig"]["thinkingConfig"] == {
        "includeThoughts": True,
        "thinkingLevel": "high",
    }
