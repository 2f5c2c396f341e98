# tests/test_plugin.py
"""
Tests for the pytest plugin, run through pytester.
"""

import json

import pytest

CONFTEST = """
import json
import pytest
from mobileauto.listener import LifecycleEvent
from mobileauto.plugin import RUNTIME_KEY

pytest_plugins = ["mobileauto.plugin"]

EVENTS = []


class Driver:
    quits = 0

    def implicitly_wait(self, seconds):
        pass

    def get_screenshot_as_png(self):
        return b"png"

    def quit(self):
        Driver.quits += 1


@pytest.hookimpl(trylast=True)
def pytest_configure(config):
    runtime = config.stash[RUNTIME_KEY]
    runtime.sessions._driver_factory = lambda url, caps: Driver()
    for kind in LifecycleEvent:
        runtime.listener.subscribe(kind, lambda e: EVENTS.append([e.kind.value, e.test_name, e.class_name]))


def pytest_sessionfinish(session):
    runtime = session.config.stash[RUNTIME_KEY]
    s = runtime.listener.summary
    data = {
        "events": EVENTS,
        "summary": [s.total, s.passed, s.failed, s.skipped, s.config_failed],
        "quits": Driver.quits,
        "reports": [[r.record.test_name, r.record.screenshot_path] for r in runtime.listener.reports],
    }
    (session.config.rootpath / "events.json").write_text(json.dumps(data))


@pytest.hookimpl(trylast=True)
def pytest_unconfigure(config):
    (config.rootpath / "quits.txt").write_text(str(Driver.quits))
"""


def run_and_load(pytester, *args):
    result = pytester.runpytest(*args)
    return result, json.loads((pytester.path / "events.json").read_text())


@pytest.fixture
def project(pytester, monkeypatch):
    for name in ("ATLASSIAN_API_TOKEN", "ATLASSIAN_BASE_URL", "DEVICE_APP_PATH"):
        monkeypatch.delenv(name, raising=False)
    pytester.makeconftest(CONFTEST)
    return pytester


class TestLifecycleEvents:
    def test_results_map_to_events(self, project):
        project.makepyfile(test_flow="""
            import pytest

            def test_ok():
                pass

            def test_bad():
                assert False, "broken"

            @pytest.mark.skip(reason="later")
            def test_skipped():
                pass

            @pytest.fixture
            def broken_setup():
                raise RuntimeError("setup exploded")

            def test_setup_error(broken_setup):
                pass
        """)

        result, data = run_and_load(project)

        result.assert_outcomes(passed=1, failed=1, skipped=1, errors=1)
        kinds = {(kind, name) for kind, name, _ in data["events"]}
        assert ("started", "test_ok") in kinds
        assert ("passed", "test_ok") in kinds
        assert ("failed", "test_bad") in kinds
        assert ("skipped", "test_skipped") in kinds
        assert ("config_failed", "test_setup_error") in kinds
        assert data["summary"] == [4, 1, 1, 1, 1]
        assert sorted(name for name, _ in data["reports"]) == ["test_bad", "test_setup_error"]

    def test_class_name_reported(self, project):
        project.makepyfile(test_cls="""
            class TestLogin:
                def test_ok(self):
                    pass
        """)

        _, data = run_and_load(project)

        assert ["passed", "test_ok", "TestLogin"] in data["events"]

    def test_passing_run_reports_nothing(self, project):
        project.makepyfile(test_pass="""
            def test_ok():
                pass
        """)

        result, data = run_and_load(project)

        result.assert_outcomes(passed=1)
        assert data["reports"] == []
        assert data["quits"] == 0


class TestFixtures:
    def test_engine_fixture_holds_session_for_one_test(self, project):
        project.makepyfile(test_engine="""
            def test_uses_engine(engine, session_manager):
                assert session_manager.is_initialized()
                assert engine.sessions is session_manager

            def test_fails_with_session(engine):
                assert False, "login button missing"

            def test_no_session(session_manager):
                assert not session_manager.is_initialized()
        """)

        result, data = run_and_load(project)

        result.assert_outcomes(passed=2, failed=1)
        assert data["quits"] == 2
        reports = dict((name, shot) for name, shot in data["reports"])
        assert reports["test_fails_with_session"] is not None
        assert reports["test_fails_with_session"].endswith(".png")

    def test_settings_from_ini(self, project):
        project.makefile(".yaml", settings="device:\n  udid: R5CT99\n")
        project.makeini("[pytest]\nmobileauto_config = settings.yaml\n")
        project.makepyfile(test_cfg="""
            def test_udid(mobile_settings):
                assert mobile_settings.device.udid == "R5CT99"
        """)

        result, _ = run_and_load(project)

        result.assert_outcomes(passed=1)

    def test_command_line_config_wins(self, project):
        project.makefile(".yaml", other="device:\n  udid: from-cli\n")
        project.makepyfile(test_cfg="""
            def test_udid(mobile_settings):
                assert mobile_settings.device.udid == "from-cli"
        """)

        result, _ = run_and_load(project, "--mobileauto-config", "other.yaml")

        result.assert_outcomes(passed=1)


class TestConfigErrors:
    def test_missing_settings_file_is_usage_error(self, project):
        project.makepyfile(test_x="def test_x():\n    pass\n")

        result = project.runpytest("--mobileauto-config", "absent.yaml")

        assert result.ret == pytest.ExitCode.USAGE_ERROR
        result.stderr.fnmatch_lines(["*Settings YAML not found*"])


class TestShutdown:
    def test_sessions_left_by_worker_threads_are_quit(self, project):
        project.makepyfile(test_threads="""
            import threading

            def test_worker_leaks_session(session_manager):
                t = threading.Thread(target=session_manager.initialize_session)
                t.start()
                t.join()
                assert len(session_manager.active_workers()) == 1
        """)

        result, data = run_and_load(project)

        result.assert_outcomes(passed=1)
        assert data["quits"] == 0
        assert (project.path / "quits.txt").read_text() == "1"


class TestAllureConfiguration:
    def test_configuration_attached_once_per_run(self, project, allure_attach):
        project.makefile(".yaml", settings="environment: staging\ndevice:\n  name: Pixel 7\n")
        project.makepyfile(test_two="""
            def test_one():
                pass

            def test_two():
                pass
        """)

        result, _ = run_and_load(project, "--mobileauto-config", "settings.yaml")

        result.assert_outcomes(passed=2)
        assert [d["name"] for d in allure_attach.data] == ["Test Configuration"]
        assert "Environment: staging" in allure_attach.data[0]["body"]
        assert "Device: Pixel 7" in allure_attach.data[0]["body"]
