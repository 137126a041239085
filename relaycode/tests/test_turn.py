"""End-to-end tests for relaycode.turn.TurnProcessor."""

import os
import shutil
import sys
import tempfile
import unittest

# Ensure relaycode package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from relaycode import hooks, turn
from relaycode.collaborators import RecordingCollaborators
from relaycode.config import HostContext
from relaycode.conversation import AWAITING_MARKER, HISTORY_MARKER, PLACEHOLDER, ConversationState
from relaycode.errors import PersistenceError
from relaycode.protocol import classifier


def box(*lines):
    return "┌─ ASSISTANT ─────────\n" + "\n".join(f"│ {line}" for line in lines) + "\n└────────────────────"


class TurnTestCase(unittest.TestCase):

    def setUp(self):
        hooks.clear()
        self.root = tempfile.mkdtemp()
        self.work = tempfile.mkdtemp()
        with open(os.path.join(self.root, "app.py"), "w") as f:
            f.write("print('hi')\nprint('bye')")
        self.ctx = HostContext(root=self.root, work_dir=self.work)
        self.recorder = RecordingCollaborators()
        self.processor = turn.TurnProcessor(self.ctx, self.recorder.as_collaborators())

    def tearDown(self):
        shutil.rmtree(self.root)
        shutil.rmtree(self.work)
        hooks.clear()

    @property
    def history(self):
        return self.processor.conversation.history

    def app_source(self):
        with open(os.path.join(self.root, "app.py")) as f:
            return f.read()


class TestReadTurns(TurnTestCase):

    def test_read_turn_appends_results(self):
        text = box("[READ] app.py")
        outcome = self.processor.process(text)
        self.assertEqual(outcome.status, turn.COMPLETED)
        self.assertEqual(outcome.kind, classifier.READ)
        self.assertTrue(outcome.ok)
        self.assertIn(text, self.history)
        self.assertIn("╔═ SYSTEM: Tool result (READ) ", self.history)
        self.assertIn("║ 1: print('hi')", self.history)
        self.assertEqual(self.recorder.renders, 1)

    def test_tool_errors_do_not_abort_turn(self):
        outcome = self.processor.process(box("[READ] missing.py", "[LIST]"))
        self.assertEqual(outcome.status, turn.COMPLETED)
        self.assertEqual([r.is_error for r in outcome.results], [True, False])
        self.assertIn("║ error: missing.py not found", self.history)

    def test_blocks_ignored_on_read_turn(self):
        events = []
        hooks.register("turn_blocks_ignored", events.append)
        self.processor.process(box("[LIST]", "NOTES: [[[START]]]", "x", "[[[END]]]"))
        self.assertEqual(events[0]["keys"], ["NOTES"])
        self.assertFalse(os.path.exists(os.path.join(self.work, "ai-managed", "notes.md")))


class TestRejectedTurns(TurnTestCase):

    def test_unboxed_response_echoed(self):
        outcome = self.processor.process("[READ] app.py")
        self.assertEqual(outcome.status, turn.FORMAT_ERROR)
        self.assertEqual(outcome.error, classifier.ERR_NOT_WRAPPED)
        self.assertEqual(outcome.results, [])
        self.assertIn(f"SYSTEM: ERROR - {classifier.ERR_NOT_WRAPPED}", self.history)
        self.assertIn(
            "--- START OF YOUR INVALID RESPONSE ---\n[READ] app.py\n--- END OF YOUR INVALID RESPONSE ---",
            self.history,
        )

    def test_mixed_turn_has_no_side_effects(self):
        events = []
        hooks.register("format_error", events.append)
        outcome = self.processor.process(box("[READ] app.py", "[DELETE] app.py"))
        self.assertEqual(outcome.status, turn.FORMAT_ERROR)
        self.assertEqual(outcome.error, classifier.ERR_MIXED)
        self.assertTrue(os.path.exists(os.path.join(self.root, "app.py")))
        self.assertIn(f"SYSTEM: ERROR - {classifier.ERR_MIXED}", self.history)
        self.assertEqual(events[0]["kind"], classifier.MIXED)

    def test_empty_box(self):
        outcome = self.processor.process(box("I have nothing to do."))
        self.assertEqual(outcome.error, classifier.ERR_EMPTY)

    def test_incomplete_message(self):
        text = "┌─ ASSISTANT\n│ [READ] app.py\n│ still typing"
        outcome = self.processor.process(text)
        self.assertEqual(outcome.status, turn.INCOMPLETE)
        self.assertEqual(outcome.results, [])
        self.assertIn('SYSTEM: Your message was cut off. Please continue from: "', self.history)
        self.assertTrue(self.history.endswith('still typing"'))

    def test_empty_input(self):
        outcome = self.processor.process("   \n")
        self.assertEqual(outcome.status, turn.EMPTY)
        self.assertEqual(self.recorder.renders, 0)
        self.assertFalse(os.path.exists(self.ctx.conversation_path))


class TestWriteTurns(TurnTestCase):

    def test_update_then_commit(self):
        outcome = self.processor.process(box("[UPDATE] app.py 1 1", "# greet louder", "print('HI')", "[END_UPDATE]"))
        self.assertEqual(outcome.status, turn.AWAITING_CONFIRMATION)
        self.assertTrue(outcome.ok)
        self.assertIn("SYSTEM: PENDING UPDATE", self.history)
        self.assertEqual(self.app_source(), "print('hi')\nprint('bye')")

        outcome = self.processor.process(box("[COMMIT]", "[[[MESSAGE_END]]]"))
        self.assertEqual(outcome.status, turn.COMPLETED)
        self.assertTrue(outcome.message_end)
        self.assertEqual(self.app_source(), "print('HI')\nprint('bye')")
        self.assertEqual(self.recorder.commits, [("app.py", "AI: greet louder")])
        self.assertIn("║ Changes committed to app.py", self.history)

    def test_pending_edit_blocks_other_turns(self):
        self.processor.process(box("[UPDATE] app.py 1 1", "x", "[END_UPDATE]"))
        outcome = self.processor.process(box("[READ] app.py"))
        self.assertEqual(outcome.status, turn.REJECTED)
        self.assertIn("SYSTEM: ERROR - pending edit for app.py", self.history)
        self.assertEqual(outcome.results, [])

    def test_turn_stops_at_first_pending_edit(self):
        events = []
        hooks.register("pending_rejected", events.append)
        outcome = self.processor.process(box(
            "[UPDATE] app.py 2 2", "print('later')", "[END_UPDATE]",
            "[UPDATE] lib.py 1 1", "z = 2", "[END_UPDATE]",
            "[CREATE] other.py", "y = 1", "[END_CREATE]",
        ))
        self.assertEqual(outcome.status, turn.AWAITING_CONFIRMATION)
        self.assertEqual([r.name for r in outcome.results], ["UPDATE", "UPDATE", "CREATE"])
        self.assertEqual([r.is_error for r in outcome.results], [False, True, True])
        self.assertEqual(
            outcome.results[1].output,
            "error: UPDATE skipped: an edit for app.py awaits confirmation",
        )
        self.assertIn("║ error: CREATE skipped: an edit for app.py awaits confirmation", self.history)
        self.assertEqual([e["tool"] for e in events], ["UPDATE", "CREATE"])
        self.assertFalse(os.path.exists(os.path.join(self.root, "other.py")))
        self.assertEqual(self.processor.controller.current().target_path, "app.py")

    def test_special_tools_run_before_file_operations(self):
        outcome = self.processor.process(box(
            "[CREATE] notes.txt", "hello", "[END_CREATE]",
            "[SWITCH_TO] implementation",
        ))
        self.assertEqual([r.name for r in outcome.results], ["SWITCH_TO", "CREATE"])
        self.assertEqual(self.processor.notes.current_mode(), "implementation")

    def test_blocks_applied_on_write_turn(self):
        outcome = self.processor.process(box(
            "[MESSAGE] noting things",
            "DISCOVERED: [[[START]]]",
            "importance: 9",
            "Config lives in config.py",
            "[[[END]]]",
            "EXPLORATION_FINDINGS: [[[START]]]",
            "The parser is total.",
            "[[[END]]]",
        ))
        self.assertEqual(outcome.block_results[0], ("DISCOVERED", "Discovery recorded (importance 9)"))
        self.assertEqual(outcome.block_results[1], ("EXPLORATION_FINDINGS", "Saved ai-managed/exploration-findings.md"))
        self.assertIn("importance:9 Config lives in config.py", self.processor.notes.discoveries())
        with open(os.path.join(self.work, "ai-managed", "exploration-findings.md")) as f:
            self.assertEqual(f.read(), "The parser is total.")

    def test_message_only_turn(self):
        outcome = self.processor.process(box("[MESSAGE] Done for now."))
        self.assertEqual(outcome.status, turn.COMPLETED)
        self.assertEqual(outcome.kind, classifier.WRITE)
        self.assertNotIn("Tool result (MESSAGE)", self.history)


class TestArtifacts(TurnTestCase):

    def test_response_file_processed_and_cleared(self):
        with open(self.ctx.response_path, "w") as f:
            f.write(box("[LIST]"))
        outcome = self.processor.process_response_file()
        self.assertEqual(outcome.status, turn.COMPLETED)
        with open(self.ctx.response_path) as f:
            self.assertEqual(f.read(), "")
        self.assertEqual(self.processor.process_response_file().status, turn.EMPTY)

    def test_submit_operator_message(self):
        with open(self.ctx.conversation_path, "w") as f:
            f.write(ConversationState(history="", awaiting="fix the bug\nin app.py").render())
        self.assertTrue(self.processor.submit_operator_message())
        self.assertEqual(self.history, "> fix the bug\nin app.py")
        with open(self.ctx.conversation_path) as f:
            content = f.read()
        self.assertTrue(content.startswith(HISTORY_MARKER))
        self.assertTrue(content.endswith(f"{AWAITING_MARKER}\n{PLACEHOLDER}"))
        self.assertFalse(self.processor.submit_operator_message())
        self.assertEqual(self.recorder.renders, 1)

    def test_corrupt_pending_record_aborts_turn(self):
        events = []
        hooks.register("persistence_error", events.append)
        with open(self.ctx.pending_path, "w") as f:
            f.write("{not json")
        with self.assertRaises(PersistenceError):
            self.processor.process(box("[COMMIT]"))
        self.assertEqual(events[0]["path"], self.ctx.pending_path)

    def test_long_conversation_compacted(self):
        exchanges = [f"> please add feature {i}\n┌─ ASSISTANT\n│ [MESSAGE] ok {i}\n└─" for i in range(6)]
        with open(self.ctx.conversation_path, "w") as f:
            f.write(ConversationState(history="\n\n".join(exchanges)).render())
        processor = turn.TurnProcessor(
            HostContext(root=self.root, work_dir=self.work, max_conversation_chars=100),
            self.recorder.as_collaborators(),
        )
        processor.process(box("[LIST]"))
        history = processor.conversation.history
        self.assertTrue(history.startswith("=== CONVERSATION SUMMARY ===\n(3 earlier exchanges summarized)"))
        self.assertIn("- User requested: please add feature 0", history)
        self.assertIn("> please add feature 5", history)
        self.assertIn("Tool result (LIST)", history)

    def test_turn_events(self):
        events = []
        hooks.register("turn_start", events.append)
        hooks.register("turn_end", events.append)
        self.processor.process(box("[READ] app.py"))
        self.assertEqual([e["event"] for e in events], ["turn_start", "turn_end"])
        self.assertEqual(events[1]["status"], turn.COMPLETED)
        self.assertEqual(events[1]["tools"], 1)


if __name__ == "__main__":
    unittest.main()
