# tests/test_ifupdown.py
from datetime import datetime
from unittest.mock import patch

import pytest

from network.ifupdown import InterfacesBackend, parse_stanzas, render_interfaces
from state import CurrentNetwork, NetworkConfig

GENERATED = datetime(2024, 5, 1, 12, 30, 0)

PROXMOX_FILE = """\
# network interface settings; autogenerated
# Please do NOT modify this file directly

auto lo
iface lo inet loopback

iface eno1 inet manual

auto vmbr0
iface vmbr0 inet static
\taddress 192.168.1.10/24
\tgateway 192.168.1.1
\tbridge-ports eno1
\tbridge-stp off
\tbridge-fd 0
#management bridge

auto vmbr1
iface vmbr1 inet manual
\tbridge-ports none
\tbridge-stp off
\tbridge-fd 0
\tbridge-vlan-aware yes


source /etc/network/interfaces.d/*
"""

EXPECTED = """\
# Network configuration generated by pve-readdress
# Generated: 2024-05-01 12:30:00

auto lo
iface lo inet loopback

auto eno1
iface eno1 inet manual

auto vmbr0
iface vmbr0 inet static
\taddress 10.0.0.5/24
\tgateway 10.0.0.1
\tdns-nameservers 1.1.1.1 9.9.9.9
\tbridge-ports eno1
\tbridge-stp off
\tbridge-fd 0
#management bridge

auto vmbr1
iface vmbr1 inet manual
\tbridge-ports none
\tbridge-stp off
\tbridge-fd 0
\tbridge-vlan-aware yes

source /etc/network/interfaces.d/*
"""

def test_parse_stanzas_splits_on_keywords():
    preamble, stanzas = parse_stanzas(PROXMOX_FILE)
    assert preamble[0].startswith("# network interface settings")
    firsts = [s[0].strip() for s in stanzas]
    assert firsts[:3] == ["auto lo", "iface lo inet loopback", "iface eno1 inet manual"]
    assert firsts[-1] == "source /etc/network/interfaces.d/*"

def test_render_proxmox_bridge(bridged_config):
    assert render_interfaces(bridged_config, PROXMOX_FILE, GENERATED) == EXPECTED

def test_render_keeps_unmanaged_stanzas_verbatim(bridged_config):
    out = render_interfaces(bridged_config, PROXMOX_FILE, GENERATED)
    assert "\tbridge-vlan-aware yes\n" in out
    assert out.count("iface vmbr0 inet") == 1
    assert "192.168.1.10" not in out

def test_render_default_bridge_options_when_none_existed():
    config = NetworkConfig(
        interface="vmbr0", ip_address="10.0.0.5", netmask="255.255.255.0",
        prefix_len=24, gateway="10.0.0.1", bridge="vmbr0", physical="enp3s0",
    )
    out = render_interfaces(config, "auto lo\niface lo inet loopback\n", GENERATED)
    assert "\tbridge-ports enp3s0\n\tbridge-stp off\n\tbridge-fd 0\n" in out
    assert "dns-nameservers" not in out

def test_render_plain_interface_without_bridge():
    existing = (
        "auto lo\niface lo inet loopback\n\n"
        "allow-hotplug ens18\niface ens18 inet dhcp\n\n"
        "iface ens18 inet6 auto\n"
    )
    config = NetworkConfig(
        interface="ens18", ip_address="10.0.0.5", netmask="255.255.255.0",
        prefix_len=24, gateway="10.0.0.1",
    )
    out = render_interfaces(config, existing, GENERATED)
    assert "iface ens18 inet static\n\taddress 10.0.0.5/24\n\tgateway 10.0.0.1\n" in out
    assert "inet dhcp" not in out
    assert "allow-hotplug" not in out
    # inet6 stanza of a managed interface is not ours to drop
    assert out.endswith("\niface ens18 inet6 auto\n")
    assert "bridge-" not in out

def test_render_multi_name_auto_line_keeps_other_names(bridged_config):
    existing = "auto lo vmbr0 vmbr9\niface vmbr9 inet manual\n"
    out = render_interfaces(bridged_config, existing, GENERATED)
    assert "auto vmbr9\niface vmbr9 inet manual\n" in out
    assert "auto lo vmbr0" not in out

def test_render_warns_about_dropped_target_options(bridged_config):
    existing = (
        "auto vmbr0\niface vmbr0 inet static\n"
        "\taddress 192.168.1.10/24\n\tgateway 192.168.1.1\n"
        "\tbridge-ports eno1\n\tmtu 9000\n\tpost-up /usr/local/bin/tune.sh\n"
    )
    with patch("network.ifupdown.log") as log:
        out = render_interfaces(bridged_config, existing, GENERATED)
    assert "mtu 9000" not in out
    log.warning.assert_called_once()
    args = log.warning.call_args.args
    assert args[1] == "vmbr0"
    assert args[2] == "mtu 9000; post-up /usr/local/bin/tune.sh"

def test_render_no_warning_when_only_address_options(bridged_config):
    with patch("network.ifupdown.log") as log:
        render_interfaces(bridged_config, PROXMOX_FILE, GENERATED)
    log.warning.assert_not_called()

@pytest.fixture
def backend(settings):
    return InterfacesBackend(settings, reload_tool="/usr/sbin/ifreload")

def test_backend_stage_writes_new_file_only(backend, settings, bridged_config):
    settings.interfaces_file.write_text(PROXMOX_FILE)
    staged = backend.stage(bridged_config, CurrentNetwork())
    assert len(staged) == 1
    assert staged[0].staged.name == "interfaces.new"
    assert staged[0].staged.read_text() == staged[0].content
    assert settings.interfaces_file.read_text() == PROXMOX_FILE

def test_backend_names(settings):
    assert InterfacesBackend(settings, reload_tool="/usr/sbin/ifreload").name == "ifupdown2"
    legacy = InterfacesBackend(settings, reload_tool=None)
    assert legacy.name == "ifupdown (legacy)"
    assert not legacy.live_reload
    assert legacy.reload() is False

def test_backend_reload_runs_ifreload(backend):
    with patch("network.backend.subprocess.run") as run:
        assert backend.reload() is True
    assert run.call_args[0][0] == ["/usr/sbin/ifreload", "-a"]

def test_backend_backup_paths(backend, settings):
    required, optional = backend.backup_paths()
    assert required == [settings.interfaces_file]
    assert optional == []
