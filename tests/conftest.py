# tests/conftest.py
import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from config import Settings
from hypervisor.qm import VMHandle
from prompts import Prompter
from state import NetworkConfig


class FakePrompter(Prompter):
    """Scripted operator. An empty-string answer accepts the default."""

    def __init__(self, answers=(), confirms=(), choices=()):
        self.answers = list(answers)
        self.confirms = list(confirms)
        self.choices = list(choices)
        self.asked = []
        self.questions = []
        self.shown = []
        self.errors = []

    def prompt(self, field, default=None):
        self.asked.append((field, default))
        assert self.answers, f"unexpected prompt: {field}"
        answer = self.answers.pop(0)
        return answer or (default or "")

    def confirm(self, question):
        self.questions.append(question)
        assert self.confirms, f"unexpected confirmation: {question}"
        return self.confirms.pop(0)

    def choose(self, question, options):
        self.questions.append(question)
        assert self.choices, f"unexpected choice: {question}"
        return self.choices.pop(0)

    def show(self, title, body):
        self.shown.append((title, body))

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def prompter():
    return FakePrompter()


@pytest.fixture
def settings(tmp_path):
    etc = tmp_path / "etc"
    (etc / "network").mkdir(parents=True)
    return Settings(
        backup_root=tmp_path / "root",
        interfaces_file=etc / "network" / "interfaces",
        netplan_dir=etc / "netplan",
        cloud_cfg_dir=etc / "cloud" / "cloud.cfg.d",
        hosts_file=etc / "hosts",
        resolv_conf=etc / "resolv.conf",
        issue_file=etc / "issue",
        pve_dir=etc / "pve",
        lock_file=tmp_path / "run" / "pve-readdress.lock",
        settle_delay=0,
        host_action_delay=0,
        run_checks=False,
    )


@pytest.fixture
def bridged_config():
    return NetworkConfig(
        interface="vmbr0",
        ip_address="10.0.0.5",
        netmask="255.255.255.0",
        prefix_len=24,
        gateway="10.0.0.1",
        bridge="vmbr0",
        physical="eno1",
        dns_servers=("1.1.1.1", "9.9.9.9"),
    )


class FakeQm:
    """Scripted qm: `stops_after` maps vmid -> polls until the guest is stopped."""

    def __init__(self, vms=(), stops_after=None, shutdown_ok=True, stop_ok=True, available=True):
        self.vms = list(vms)
        self.stops_after = dict(stops_after or {})
        self.shutdown_ok = shutdown_ok
        self.stop_ok = stop_ok
        self._available = available
        self.polls = {}
        self.calls = []

    def available(self):
        return self._available

    def list_vms(self):
        return [VMHandle(v.vmid, v.name, v.status) for v in self.vms]

    def status(self, vmid):
        self.polls[vmid] = self.polls.get(vmid, 0) + 1
        after = self.stops_after.get(vmid)
        if after is not None and self.polls[vmid] > after:
            return "stopped"
        return "running"

    def shutdown(self, vmid):
        self.calls.append(("shutdown", vmid))
        return self.shutdown_ok

    def stop(self, vmid):
        self.calls.append(("stop", vmid))
        return self.stop_ok
