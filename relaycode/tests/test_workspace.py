"""Tests for relaycode.workspace and relaycode.conversation."""

import os
import shutil
import sys
import tempfile
import unittest
from datetime import date

# Ensure relaycode package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from relaycode import hooks, store
from relaycode.compaction import parse_discoveries
from relaycode.config import HostContext
from relaycode.conversation import (
    ConversationLog,
    cut_off_notice,
    format_error_feedback,
    parse_conversation,
    system_box,
)
from relaycode.errors import PersistenceError, ToolExecutionError
from relaycode.workspace import WorkspaceNotes, clamp_importance, sanitize_name


class WorkspaceTestCase(unittest.TestCase):

    def setUp(self):
        hooks.clear()
        self.work = tempfile.mkdtemp()
        self.ctx = HostContext(root=self.work, work_dir=self.work, max_discoveries=3)
        self.notes = WorkspaceNotes(self.ctx, today=lambda: date(2024, 5, 1))

    def tearDown(self):
        shutil.rmtree(self.work)
        hooks.clear()


class TestDiscoveries(WorkspaceTestCase):

    def test_add_discovery(self):
        result = self.notes.add_discovery("spans\n  two lines", "7")
        self.assertEqual(result, "Discovery recorded (importance 7)")
        self.assertEqual(self.notes.discoveries(), "[2024-05-01] importance:7 spans two lines")

    def test_importance_clamped(self):
        self.assertEqual(clamp_importance("42"), 10)
        self.assertEqual(clamp_importance("0"), 1)
        self.assertEqual(clamp_importance(None), 5)

    def test_empty_discovery(self):
        with self.assertRaises(ToolExecutionError):
            self.notes.add_discovery("   ")

    def test_log_compacted_past_max(self):
        events = []
        hooks.register("compaction", events.append)
        for i, importance in enumerate(("2", "10", "4", "6")):
            self.notes.add_discovery(f"note {i}", importance)
        entries = parse_discoveries(self.notes.discoveries())
        self.assertEqual([e.content for e in entries], ["note 1", "note 3", "note 2"])
        self.assertEqual(events[0]["target"], "discoveries")

    def test_discovery_block(self):
        self.notes.add_discovery_block("importance: 3\nfirst\nsecond")
        self.assertIn("importance:3 first second", self.notes.discoveries())


class TestModes(WorkspaceTestCase):

    def test_default_mode(self):
        self.assertEqual(self.notes.current_mode(), "exploration")

    def test_switch(self):
        self.notes.switch_mode("Implementation")
        self.assertEqual(self.notes.current_mode(), "implementation")
        self.assertEqual(self.notes.mode_lines(), ["  exploration", "  planning", "x implementation"])

    def test_custom_mode_file(self):
        store.write_text(self.ctx.mode_path, "x review\n  ship")
        self.notes.switch_mode("ship")
        self.assertEqual(self.notes.current_mode(), "ship")
        with self.assertRaises(ToolExecutionError):
            self.notes.switch_mode("planning")


class TestDocuments(WorkspaceTestCase):

    def test_sanitize_name(self):
        self.assertEqual(sanitize_name("My Plan.md"), "My-Plan")
        self.assertEqual(sanitize_name("../../etc/passwd"), "etc-passwd")

    def test_save_document_stays_in_docs_dir(self):
        result = self.notes.save_document("EXPLORATION_FINDINGS", "../escape", "body")
        self.assertEqual(result, "Saved ai-docs/escape.md")
        self.assertTrue(os.path.exists(os.path.join(self.work, "ai-docs", "escape.md")))

    def test_save_document_requires_name(self):
        with self.assertRaises(ToolExecutionError):
            self.notes.save_document("DETAILED_PLAN", "  ", "body")

    def test_apply_blocks_reports_errors(self):
        results = self.notes.apply_blocks({"SWITCH_TO": "sleeping", "DISCOVERED": "found it"})
        self.assertEqual(results[0], ("DISCOVERED", "Discovery recorded (importance 5)"))
        self.assertTrue(results[1][1].startswith("error: unknown mode"))

    def test_generic_block(self):
        self.assertEqual(self.notes.apply_block("TEST_NOTES", "x"), "Saved ai-managed/test-notes.md")


class TestConversationArtifact:

    def setup_method(self):
        self.work = tempfile.mkdtemp()
        self.log = ConversationLog(HostContext(root=self.work, work_dir=self.work))

    def teardown_method(self):
        shutil.rmtree(self.work)

    def test_append_and_render(self):
        self.log.append("first")
        self.log.append("\nsecond\n")
        assert self.log.history == "first\n\nsecond"
        assert store.read_text_if_exists(self.log.path) == (
            "=== CONVERSATION HISTORY ===\n\nfirst\n\nsecond\n\n"
            "=== WAITING FOR YOUR MESSAGE ===\n[write here when ready]"
        )

    def test_bare_file_is_history(self):
        state = parse_conversation("just some text\n")
        assert state.history == "just some text"
        assert state.awaiting == ""

    def test_unreadable_artifact(self):
        os.makedirs(self.log.path)
        try:
            self.log.load()
        except PersistenceError as e:
            assert e.path == self.log.path
        else:
            raise AssertionError("expected PersistenceError")


class TestFeedbackFormatting:

    def test_system_box(self):
        lines = system_box("Tool result (READ)", "a\nb").split("\n")
        assert lines[0].startswith("╔═ SYSTEM: Tool result (READ) ═")
        assert lines[0].endswith("╗")
        assert len(lines[0]) == 70
        assert lines[1:3] == ["║ a", "║ b"]
        assert lines[3] == "╚" + "═" * 68 + "╝"

    def test_error_feedback(self):
        assert format_error_feedback("bad") == "SYSTEM: ERROR - bad"
        echoed = format_error_feedback("bad", "[READ] x")
        assert "--- START OF YOUR INVALID RESPONSE ---\n[READ] x\n--- END OF YOUR INVALID RESPONSE ---" in echoed

    def test_cut_off_notice_tail(self):
        text = "x" * 150 + "END"
        notice = cut_off_notice(text)
        assert notice.endswith('x' * 97 + 'END"')


if __name__ == "__main__":
    unittest.main()
