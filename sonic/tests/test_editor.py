"""
Tests for incremental project edits.

Validates:
1. Merging replaces by path and appends unknown paths
2. Merging the same patches twice changes nothing more
3. Yes/no follow-ups to the modify prompt
4. Malformed edit replies leave files untouched
"""

import json

from conftest import FakeLLM
from sonic.ai.prompts import MODIFY_PROMPT
from sonic.conversation.editor import DECLINE_REPLY, MODIFY_DIRECTIVE, edit, merge_files
from sonic.conversation.models import ChatTurn, CodeFile, Project, ProjectFile, ProjectType


def _project(last_reply=f"Created a todo app\n\n{MODIFY_PROMPT}"):
    return Project(
        conversation_id="c1",
        owner_id="u1",
        type=ProjectType.PROJECT,
        title="Todo App",
        features=["Add tasks"],
        files=[
            ProjectFile(path="/src/App.js", content="app"),
            ProjectFile(path="/src/styles.css", content="button { color: blue; }"),
        ],
        chat_history=[
            ChatTurn(role="user", content="build a todo app"),
            ChatTurn(role="model", content=last_reply),
        ],
    )


class TestMergeFiles:
    def test_replace_in_place(self):
        files = _project().files
        merged, changed = merge_files(files, [CodeFile(name="/src/styles.css", content="button { color: red; }")])
        assert [f.path for f in merged] == ["/src/App.js", "/src/styles.css"]
        assert merged[1].content == "button { color: red; }"
        assert changed == ["/src/styles.css"]

    def test_append_new_path(self):
        files = _project().files
        merged, changed = merge_files(files, [CodeFile(name="/src/pages/About.js", content="about")])
        assert [f.path for f in merged][-1] == "/src/pages/About.js"
        assert changed == ["/src/pages/About.js"]

    def test_idempotent(self):
        patches = [
            CodeFile(name="/src/styles.css", content="button { color: red; }"),
            CodeFile(name="/src/pages/About.js", content="about"),
        ]
        once, _ = merge_files(_project().files, patches)
        twice, changed = merge_files(once, patches)
        assert [f.model_dump() for f in twice] == [f.model_dump() for f in once]
        assert changed == []

    def test_input_not_mutated(self):
        files = _project().files
        merge_files(files, [CodeFile(name="/src/App.js", content="changed")])
        assert files[0].content == "app"


class TestEdit:
    def test_applies_model_code(self):
        reply = json.dumps({
            "message": "Made the button red",
            "code": [{"name": "/src/styles.css", "content": "button { color: red; }"}],
        })
        llm = FakeLLM(chat_replies=[reply])
        result = edit(llm, _project(), "change the button color to red", [])
        assert result.reply == "Made the button red"
        assert result.changed == ["/src/styles.css"]
        assert result.patches[0].content == "button { color: red; }"
        assert "change the button color to red" in llm.chat_calls[0][1]

    def test_message_only_reply(self):
        llm = FakeLLM(chat_replies=['{"message": "The navbar lives in Navbar.js"}'])
        result = edit(llm, _project(), "where is the navbar?", [])
        assert result.reply == "The navbar lives in Navbar.js"
        assert result.changed == []

    def test_yes_becomes_modify_directive(self):
        llm = FakeLLM(chat_replies=['{"message": "What would you like to change?"}'])
        edit(llm, _project(), "Yes", [])
        assert MODIFY_DIRECTIVE in llm.chat_calls[0][1]

    def test_no_declines_without_model_call(self):
        llm = FakeLLM()
        result = edit(llm, _project(), "nope", [])
        assert result.reply == DECLINE_REPLY
        assert llm.chat_calls == []

    def test_no_without_modify_prompt_goes_to_model(self):
        llm = FakeLLM(chat_replies=['{"message": "Okay"}'])
        edit(llm, _project(last_reply="Here is the layout."), "no", [])
        assert len(llm.chat_calls) == 1

    def test_malformed_reply_keeps_files(self):
        llm = FakeLLM(chat_replies=["Sorry, I cannot do that right now."])
        project = _project()
        result = edit(llm, project, "add dark mode", [])
        assert result.malformed
        assert result.reply == "Sorry, I cannot do that right now."
        assert result.patches == []
        assert result.changed == []

    def test_context_turns_are_passed_as_history(self):
        llm = FakeLLM(chat_replies=['{"message": "ok"}'])
        turns = [{"role": "user", "content": "build a todo app"}, {"role": "model", "content": "done"}]
        edit(llm, _project(), "tweak it", turns)
        assert llm.chat_calls[0][0] == turns
