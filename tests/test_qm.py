# tests/test_qm.py
import subprocess
from unittest.mock import MagicMock, patch

from hypervisor.qm import QmClient, parse_qm_list, parse_qm_status

QM_LIST = """\
      VMID NAME                 STATUS     MEM(MB)    BOOTDISK(GB) PID
       100 web01                running    2048              32.00 1234
       101 db01                 stopped    4096              64.00 0
       102 build                running    1024              16.00 5678
"""

def test_parse_qm_list():
    vms = parse_qm_list(QM_LIST)
    assert [(v.vmid, v.name, v.status) for v in vms] == [
        (100, "web01", "running"),
        (101, "db01", "stopped"),
        (102, "build", "running"),
    ]

def test_parse_qm_list_empty():
    assert parse_qm_list("") == []

def test_parse_qm_status():
    assert parse_qm_status("status: running\n") == "running"
    assert parse_qm_status("garbage") is None

def test_display_str():
    vm = parse_qm_list(QM_LIST)[0]
    assert vm.display_str() == "VM 100: web01 (Status: running)"

def _completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)

def test_list_vms_failure_returns_empty():
    with patch("hypervisor.qm.subprocess.run", return_value=_completed(2, stderr="boom")):
        assert QmClient().list_vms() == []

def test_status_runs_qm_status():
    with patch("hypervisor.qm.subprocess.run", return_value=_completed(stdout="status: stopped\n")) as run:
        assert QmClient().status(100) == "stopped"
    assert run.call_args[0][0] == ["qm", "status", "100"]

def test_shutdown_timeout_counts_as_sent():
    with patch("hypervisor.qm.subprocess.run", side_effect=subprocess.TimeoutExpired("qm", 30)):
        assert QmClient().shutdown(100) is True

def test_shutdown_failure():
    with patch("hypervisor.qm.subprocess.run", return_value=_completed(1, stderr="locked")):
        assert QmClient().shutdown(100) is False

def test_stop():
    with patch("hypervisor.qm.subprocess.run", return_value=_completed()) as run:
        assert QmClient().stop(101) is True
    assert run.call_args[0][0] == ["qm", "stop", "101"]

def test_available():
    with patch("hypervisor.qm.shutil.which", return_value=None):
        assert not QmClient().available()
