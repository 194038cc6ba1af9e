"""
Tests for core.engine — the update session state machine.
"""

import sys
from pathlib import Path

# Add src and tests to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

import unittest
from core.config import RunConfig
from core.engine import UpdateEngine, SessionInterrupted
from core.prerequisites import InsufficientPrivileges, MissingDependency
from core.prompts import AutoConfirm
from core.session import ExitCode, Stage
from fakes import FakePlugin, ScriptedPrompt, PassingValidator, RecordingReporter


class FailingValidator:
    def __init__(self, error):
        self.error = error

    def validate(self):
        raise self.error


class EngineTestCase(unittest.TestCase):

    def run_engine(self, plugin, prompt=None, validator=None, config=None):
        config = config or RunConfig()
        self.reporter = RecordingReporter()
        with UpdateEngine(
            config,
            plugin,
            prompt or AutoConfirm(),
            reporter=self.reporter,
            validator=validator or PassingValidator(config),
        ) as engine:
            engine.execute()
        return engine


class TestPrerequisiteFailure(EngineTestCase):

    def test_no_package_commands_and_exit_1(self):
        plugin = FakePlugin(upgradable=5)
        engine = self.run_engine(plugin, validator=FailingValidator(InsufficientPrivileges()))
        self.assertEqual(plugin.calls, [])
        self.assertEqual(engine.exit_code, 1)

    def test_missing_dependency_exit_1(self):
        plugin = FakePlugin()
        engine = self.run_engine(plugin, validator=FailingValidator(MissingDependency(["apt"])))
        self.assertEqual(engine.exit_code, 1)

    def test_no_report_sent(self):
        self.run_engine(FakePlugin(), validator=FailingValidator(InsufficientPrivileges()))
        self.assertEqual(self.reporter.reports, [])


class TestRefreshFailure(EngineTestCase):

    def test_aborts_with_exit_2(self):
        plugin = FakePlugin(refresh_rc=100, upgradable=4)
        engine = self.run_engine(plugin)
        self.assertEqual(plugin.calls, ["refresh"])
        self.assertEqual(engine.session.updates_available, 0)
        self.assertEqual(engine.exit_code, 2)

    def test_still_reports(self):
        self.run_engine(FakePlugin(refresh_rc=100))
        self.assertEqual(len(self.reporter.reports), 1)


class TestNoUpdates(EngineTestCase):

    def test_skips_apply_and_cleanup(self):
        plugin = FakePlugin(upgradable=0)
        engine = self.run_engine(plugin)
        self.assertEqual(plugin.calls, ["refresh", "list"])
        self.assertEqual(engine.exit_code, 0)

    def test_interactive_mode_never_prompts(self):
        plugin = FakePlugin(upgradable=0)
        prompt = ScriptedPrompt()
        engine = self.run_engine(plugin, prompt=prompt)
        self.assertEqual(prompt.asked, [])
        self.assertEqual(engine.exit_code, 0)


class TestQueryFailure(EngineTestCase):

    def test_completed_with_errors(self):
        plugin = FakePlugin(list_rc=100, upgradable=3)
        engine = self.run_engine(plugin)
        self.assertEqual(plugin.calls, ["refresh", "list"])
        self.assertEqual(engine.session.errors_occurred, 1)
        self.assertEqual(engine.exit_code, 5)


class TestApply(EngineTestCase):

    def test_auto_confirm_counts_upgrades_and_cleans(self):
        plugin = FakePlugin(upgradable=3, upgraded=3, removed=2)
        engine = self.run_engine(plugin, prompt=AutoConfirm())
        self.assertEqual(engine.session.packages_upgraded, 3)
        self.assertEqual(engine.session.packages_removed, 2)
        self.assertEqual(plugin.calls, ["refresh", "list", "upgrade", "autoremove", "autoclean"])
        self.assertEqual(engine.exit_code, 0)

    def test_declined_apply_is_not_an_error(self):
        plugin = FakePlugin(upgradable=4)
        prompt = ScriptedPrompt([False])
        engine = self.run_engine(plugin, prompt=prompt)
        self.assertNotIn("upgrade", plugin.calls)
        self.assertNotIn("autoremove", plugin.calls)
        self.assertEqual(engine.session.errors_occurred, 0)
        self.assertEqual(engine.session.updates_available, 4)
        self.assertEqual(engine.session.skipped, (Stage.APPLY,))
        self.assertEqual(engine.session.status, "SUCCESS")
        self.assertEqual(engine.exit_code, 0)
        self.assertEqual(len(self.reporter.reports), 1)

    def test_apply_failure_skips_cleanup(self):
        plugin = FakePlugin(upgradable=2, upgrade_rc=100)
        engine = self.run_engine(plugin)
        self.assertEqual(plugin.calls, ["refresh", "list", "upgrade"])
        self.assertEqual(engine.session.errors_occurred, 1)
        self.assertEqual(engine.exit_code, 3)


class TestCleanup(EngineTestCase):

    def test_remove_failure_does_not_stop_clean(self):
        plugin = FakePlugin(upgradable=1, upgraded=1, remove_rc=100)
        engine = self.run_engine(plugin)
        self.assertIn("autoclean", plugin.calls)
        self.assertEqual(engine.session.errors_occurred, 1)
        self.assertEqual(engine.exit_code, 4)

    def test_both_fail(self):
        plugin = FakePlugin(upgradable=1, upgraded=1, remove_rc=1, clean_rc=1)
        engine = self.run_engine(plugin)
        self.assertEqual(engine.session.errors_occurred, 2)
        self.assertEqual(engine.exit_code, 4)

    def test_sub_steps_independently_confirmable(self):
        plugin = FakePlugin(upgradable=1, upgraded=1, removed=3)
        prompt = ScriptedPrompt([True, False, True])
        engine = self.run_engine(plugin, prompt=prompt)
        self.assertNotIn("autoremove", plugin.calls)
        self.assertIn("autoclean", plugin.calls)
        self.assertEqual(engine.session.packages_removed, 0)
        self.assertEqual(engine.session.skipped, (Stage.REMOVE_UNUSED,))
        self.assertEqual(engine.exit_code, 0)


class TestInterrupt(EngineTestCase):

    def _interrupt(self):
        raise SessionInterrupted("Received signal SIGTERM")

    def test_interrupt_finalizes_once_and_counts_error(self):
        plugin = FakePlugin(upgradable=2, on_upgrade=self._interrupt)
        engine = self.run_engine(plugin)
        self.assertNotIn("autoremove", plugin.calls)
        self.assertEqual(len(self.reporter.reports), 1)
        self.assertEqual(engine.session.errors_occurred, 1)
        self.assertEqual(engine.exit_code, 5)

    def test_keyboard_interrupt(self):
        def _ctrl_c():
            raise KeyboardInterrupt
        engine = self.run_engine(FakePlugin(upgradable=2, on_upgrade=_ctrl_c))
        self.assertEqual(engine.exit_code, 5)

    def test_interrupt_outside_execute_is_absorbed(self):
        config = RunConfig()
        reporter = RecordingReporter()
        with UpdateEngine(config, FakePlugin(upgradable=1, upgraded=1), AutoConfirm(),
                          reporter=reporter, validator=PassingValidator(config)) as engine:
            engine.execute()
            raise SessionInterrupted("Received signal SIGTERM")
        self.assertTrue(engine._finalized)
        self.assertEqual(len(reporter.reports), 1)
        self.assertEqual(engine.session.errors_occurred, 1)
        self.assertEqual(engine.exit_code, 5)

    def test_interrupt_while_reporting_still_writes_footer(self):
        class InterruptedReporter:
            def report(self, session, recipient, context):
                raise KeyboardInterrupt

        config = RunConfig()
        with self.assertLogs("core.engine", level="INFO") as logs:
            with UpdateEngine(config, FakePlugin(upgradable=1, upgraded=1), AutoConfirm(),
                              reporter=InterruptedReporter(),
                              validator=PassingValidator(config)) as engine:
                engine.execute()
        messages = [r.getMessage() for r in logs.records]
        self.assertIn("Update Script Completed", messages)
        self.assertIn("Exit code: 0", messages)
        self.assertEqual(engine.exit_code, 0)


class TestFinalize(EngineTestCase):

    def test_finalize_is_idempotent(self):
        engine = self.run_engine(FakePlugin(upgradable=1, upgraded=1))
        engine.finalize()
        engine.finalize()
        self.assertEqual(len(self.reporter.reports), 1)

    def test_report_matches_session_counters(self):
        engine = self.run_engine(FakePlugin(upgradable=5, upgraded=4, removed=2, clean_rc=1))
        reported, _, _ = self.reporter.reports[0]
        self.assertEqual(reported, engine.session)
        self.assertEqual(
            (reported.updates_available, reported.packages_upgraded,
             reported.packages_removed, reported.errors_occurred),
            (5, 4, 2, 1),
        )

    def test_recipient_from_validated_config(self):
        config = RunConfig(email="ops@example.com")
        self.run_engine(FakePlugin(), validator=PassingValidator(config.without_email()), config=config)
        _, recipient, _ = self.reporter.reports[0]
        self.assertIsNone(recipient)


if __name__ == "__main__":
    unittest.main()
