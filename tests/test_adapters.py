"""
Tests for adapters — command runner, fake runner, apt package manager.
"""

import subprocess

import pytest

from devbox.adapters.mock import FakeDpkg, FakeRunner
from devbox.adapters.packages.apt import AptPackageManager
from devbox.adapters.shell.command import CommandResult, CommandRunner
from devbox.core.errors import CommandFailed, PermissionDenied

# ── CommandResult ───────────────────────────────────────────────────


class TestCommandResult:
    def test_ok(self):
        result = CommandResult(argv=["true"], returncode=0)
        assert result.ok
        assert result.require() is result

    def test_nonzero_raises_command_failed(self):
        result = CommandResult(argv=["make", "install"], returncode=2, stderr="warn\nmake: *** Error 2\n")
        with pytest.raises(CommandFailed) as exc:
            result.require("build")
        assert exc.value.returncode == 2
        assert "make: *** Error 2" in str(exc.value)
        assert "warn" not in str(exc.value)

    def test_sudo_refusal_is_permission_denied(self):
        result = CommandResult(argv=["apt-get", "install"], returncode=1, stderr="sudo: a password is required\n")
        assert result.permission_denied
        with pytest.raises(PermissionDenied, match="apt-get install"):
            result.require("apt-get install")

    def test_timeout_message(self):
        result = CommandResult(argv=["ssh"], timed_out=True, metadata={"timeout": 3})
        assert not result.ok
        with pytest.raises(CommandFailed, match="timed out after 3s"):
            result.require()

    def test_output_combines_streams(self):
        result = CommandResult(argv=["x"], returncode=0, stdout="a", stderr="b")
        assert result.output == "ab"


# ── CommandRunner ───────────────────────────────────────────────────


class TestCommandRunner:
    def test_success(self):
        result = CommandRunner().run(["true"])
        assert result.ok
        assert result.returncode == 0

    def test_failure_is_captured_not_raised(self):
        result = CommandRunner().run(["false"])
        assert not result.ok
        assert result.returncode == 1

    def test_env_layers(self):
        runner = CommandRunner(base_env={"DEVBOX_A": "base", "DEVBOX_B": "base"})
        result = runner.run(["sh", "-c", "echo $DEVBOX_A $DEVBOX_B"], env={"DEVBOX_B": "call"})
        assert result.stdout.strip() == "base call"

    def test_missing_binary(self):
        result = CommandRunner().run(["definitely-not-a-real-binary-xyz"])
        assert not result.ok
        assert "Cannot execute" in result.error

    def test_timeout(self):
        result = CommandRunner().run(["sleep", "5"], timeout=0.2)
        assert result.timed_out
        assert result.metadata["timeout"] == 0.2

    def test_input(self):
        result = CommandRunner().run(["cat"], input="hello")
        assert result.stdout == "hello"


class TestSudoPrefix:
    @pytest.fixture
    def captured(self, monkeypatch):
        seen = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            seen["input"] = kwargs.get("input")
            return subprocess.CompletedProcess(cmd, 0, "", "")

        monkeypatch.setattr("devbox.adapters.shell.command.os.geteuid", lambda: 1000)
        monkeypatch.setattr("devbox.adapters.shell.command.subprocess.run", fake_run)
        return seen

    def test_plain_sudo(self, captured):
        CommandRunner().run(["apt-get", "update"], needs_sudo=True)
        assert captured["cmd"] == ["sudo", "apt-get", "update"]

    def test_non_interactive_sudo(self, captured):
        CommandRunner(non_interactive=True).run(["apt-get", "update"], needs_sudo=True)
        assert captured["cmd"][:2] == ["sudo", "-n"]

    def test_password_goes_to_stdin_not_argv(self, captured):
        result = CommandRunner(sudo_password="s3cret").run(["apt-get", "update"], needs_sudo=True)
        assert captured["cmd"] == ["sudo", "-S", "-k", "apt-get", "update"]
        assert captured["input"].startswith("s3cret\n")
        assert "s3cret" not in " ".join(result.argv)

    def test_no_sudo_when_not_needed(self, captured):
        CommandRunner().run(["id"])
        assert captured["cmd"] == ["id"]


# ── FakeRunner ──────────────────────────────────────────────────────


class TestFakeRunner:
    def test_default_success_and_log(self):
        runner = FakeRunner()
        assert runner.run(["echo", "hi"]).ok
        assert runner.commands == [["echo", "hi"]]
        assert runner.call_count == 1

    def test_latest_registration_wins(self):
        runner = FakeRunner()
        runner.on("git", stdout="generic")
        runner.on("git", "--version", stdout="git version 2.43.0")
        assert runner.run(["git", "--version"]).stdout == "git version 2.43.0"
        assert runner.run(["git", "status"]).stdout == "generic"

    def test_failure_and_timeout(self):
        runner = FakeRunner()
        runner.set_failure("make", stderr="no rule")
        runner.set_timeout("ssh")
        assert runner.run(["make"]).stderr == "no rule"
        assert runner.run(["ssh", "-T"], timeout=4).timed_out

    def test_records_sudo_and_env(self):
        runner = FakeRunner()
        runner.run(["apt-get", "update"], needs_sudo=True, env={"A": "1"})
        call = runner.call_log[0]
        assert call.needs_sudo
        assert call.env == {"A": "1"}
        assert runner.ran("apt-get")

    def test_which(self):
        runner = FakeRunner(executables={"git"})
        assert runner.which("git") == "/usr/bin/git"
        assert runner.which("go") is None

    def test_reset(self):
        runner = FakeRunner()
        runner.set_failure("x")
        runner.run(["x"])
        runner.reset()
        assert runner.call_count == 0
        assert runner.run(["x"]).ok


# ── AptPackageManager ───────────────────────────────────────────────


class TestAptPackageManager:
    def test_installed_version(self, runner, dpkg):
        dpkg.installed["git"] = "1:2.43.0-1"
        apt = AptPackageManager(runner)
        assert apt.installed_version("git") == "1:2.43.0-1"
        assert apt.installed_version("curl") is None

    def test_half_installed_counts_as_missing(self):
        runner = FakeRunner()
        runner.on("dpkg-query", stdout="deinstall ok config-files\t1.0")
        assert AptPackageManager(runner).installed_version("git") is None

    def test_missing_and_install(self, runner, dpkg):
        dpkg.installed["curl"] = "8.5.0"
        apt = AptPackageManager(runner)
        assert apt.missing(["curl", "wget"]) == ["wget"]

        apt.install(["wget"])
        assert apt.missing(["curl", "wget"]) == []
        install = next(c for c in runner.call_log if c.argv[:2] == ["apt-get", "install"])
        assert install.needs_sudo
        assert install.env["DEBIAN_FRONTEND"] == "noninteractive"

    def test_install_unavailable(self, runner):
        FakeDpkg(unavailable={"nosuch"}).attach(runner)
        with pytest.raises(CommandFailed, match="Unable to locate package nosuch"):
            AptPackageManager(runner).install(["nosuch"])

    def test_pending_count(self):
        runner = FakeRunner()
        runner.on("apt-get", "-s", "upgrade", stdout="12 upgraded, 0 newly installed, 0 to remove")
        runner.on("apt-get", "-s", "autoremove", stdout="0 upgraded, 0 newly installed, 3 to remove")
        apt = AptPackageManager(runner)
        assert apt.pending_count("upgrade") == 12
        assert apt.pending_count("autoremove") == 3
        assert not any(c.needs_sudo for c in runner.call_log)

    def test_pending_count_unavailable(self):
        runner = FakeRunner()
        runner.set_failure("apt-get")
        assert AptPackageManager(runner).pending_count("upgrade") is None

    def test_update_refresh_counted(self, runner, dpkg):
        AptPackageManager(runner).update()
        assert dpkg.update_calls == 1

    def test_autoremove_also_cleans(self, runner, dpkg):
        AptPackageManager(runner).autoremove()
        assert ["apt-get", "autoremove", "-y"] in runner.commands
        assert ["apt-get", "autoclean"] in runner.commands
