# tests/test_hosts.py
from network.hosts import rewrite_hosts, stage_hosts

HOSTS = """\
127.0.0.1 localhost.localdomain localhost
192.168.1.10 pve1.example.com pve1

# The following lines are desirable for IPv6 capable hosts
::1     ip6-localhost ip6-loopback
"""

def test_current_entry_gets_new_address():
    out = rewrite_hosts(HOSTS, "192.168.1.10", "10.0.0.5", "pve1", "pve1.example.com")
    assert "10.0.0.5 pve1.example.com pve1\n" in out
    assert "192.168.1.10" not in out

def test_other_lines_untouched():
    out = rewrite_hosts(HOSTS, "192.168.1.10", "10.0.0.5", "pve1", "pve1.example.com")
    assert out.replace("10.0.0.5", "192.168.1.10") == HOSTS

def test_unrelated_names_on_current_ip_kept():
    text = "127.0.0.1 localhost\n192.168.1.10 pve1 backup-alias # old\n"
    out = rewrite_hosts(text, "192.168.1.10", "10.0.0.5", "pve1")
    assert out == "127.0.0.1 localhost\n10.0.0.5 pve1 backup-alias # old\n"

def test_entry_inserted_after_loopback_when_missing():
    text = "127.0.0.1 localhost\n127.0.1.1 other\n\n10.9.9.9 nas\n"
    out = rewrite_hosts(text, None, "10.0.0.5", "pve1", "pve1.example.com")
    assert out == (
        "127.0.0.1 localhost\n127.0.1.1 other\n"
        "10.0.0.5\tpve1.example.com pve1\n"
        "\n10.9.9.9 nas\n"
    )

def test_stale_host_entries_removed():
    text = "127.0.0.1 localhost\n127.0.1.1 pve1\n172.16.0.9 pve1 nfs\n"
    out = rewrite_hosts(text, "192.168.1.10", "10.0.0.5", "pve1")
    assert "127.0.1.1" not in out
    assert "172.16.0.9\tnfs\n" in out
    assert "10.0.0.5\tpve1\n" in out

def test_existing_mapping_to_new_ip_kept():
    text = "127.0.0.1 localhost\n10.0.0.5 pve1\n"
    assert rewrite_hosts(text, "192.168.1.10", "10.0.0.5", "pve1") == text

def test_duplicate_current_entries_collapse():
    text = "192.168.1.10 pve1\n192.168.1.10 pve1 web\n"
    out = rewrite_hosts(text, "192.168.1.10", "10.0.0.5", "pve1")
    assert out == "10.0.0.5 pve1\n10.0.0.5\tweb\n"

def test_stage_hosts_writes_new_file(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text(HOSTS)
    staged = stage_hosts(hosts, "192.168.1.10", "10.0.0.5", "pve1", "pve1.example.com")
    assert staged.staged == tmp_path / "hosts.new"
    assert "10.0.0.5" in staged.staged.read_text()
    assert hosts.read_text() == HOSTS
