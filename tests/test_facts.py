"""
Tests for host fact gathering.
"""

from pathlib import Path

from devbox.adapters.mock import FakeRunner
from devbox.core.services.facts import gather_facts, parse_os_release

OS_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
# comment
VERSION_CODENAME=jammy
ID=ubuntu
UBUNTU_CODENAME=jammy
"""


class TestFacts:
    def test_parse_os_release(self):
        info = parse_os_release(OS_RELEASE)
        assert info["NAME"] == "Ubuntu"
        assert info["VERSION_CODENAME"] == "jammy"
        assert "# comment" not in info

    def test_gather_facts(self, tmp_path: Path):
        os_release = tmp_path / "os-release"
        os_release.write_text(OS_RELEASE)
        runner = FakeRunner()
        runner.on("dpkg", "--print-architecture", stdout="arm64\n")

        facts = gather_facts(runner, user="dev", os_release=os_release)
        assert facts == {
            "platform.arch": "arm64",
            "platform.codename": "jammy",
            "platform.distro": "ubuntu",
            "user.name": "dev",
        }

    def test_missing_os_release(self, tmp_path: Path):
        runner = FakeRunner()
        runner.on("dpkg", "--print-architecture", stdout="amd64\n")
        facts = gather_facts(runner, user="dev", os_release=tmp_path / "nope")
        assert facts["platform.codename"] == ""
        assert facts["platform.arch"] == "amd64"
