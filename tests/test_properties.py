import logging

import pytest

from noderun.sandbox.properties import (
    HardeningProperty,
    PropertyImportError,
    filter_properties,
    import_hardening_properties,
    is_importable,
)

SHOW_OUTPUT = """\
Type=simple
Restart=always
ProtectHome=yes
User=root
DropInPaths=/etc/systemd/system/munin-node.service.d/override.conf
EnvironmentFiles=/etc/default/munin-node (ignore_errors=yes)
LimitNOFILE=524288
LimitNOFILESoft=1024
PrivateTmp=yes
ExecStart={ path=/usr/sbin/munin-node ; argv[]=/usr/sbin/munin-node --foreground }
ReadWritePaths=/var/lib/munin-node /var/log/munin
"""


@pytest.mark.parametrize(
    "name",
    ["ProtectHome", "ProtectSystem", "PrivateTmp", "RestrictNamespaces", "User",
     "LimitNOFILE", "SystemCallFilter", "ReadWritePaths", "CapabilityBoundingSet"],
)
def test_hardening_properties_are_importable(name):
    assert is_importable(name)


@pytest.mark.parametrize(
    "name",
    ["EnvironmentFiles", "EnvironmentFile", "DropInPaths", "LimitNOFILESoft",
     "Type", "Restart", "ExecStart", "Description", "MainPID"],
)
def test_other_properties_are_not_importable(name):
    assert not is_importable(name)


def test_filter_keeps_order_and_duplicates():
    lines = ["ProtectHome=yes", "Type=simple", "ProtectHome=read-only", "no equals sign"]
    assert filter_properties(lines) == [
        HardeningProperty("ProtectHome", "yes"),
        HardeningProperty("ProtectHome", "read-only"),
    ]


def test_value_is_kept_verbatim():
    [prop] = filter_properties(["ReadWritePaths=/var/lib/a /var/lib/b=c"])
    assert prop.literal == "ReadWritePaths=/var/lib/a /var/lib/b=c"


def test_import_runs_systemctl_show(fake_run):
    fake_run.queue(stdout=SHOW_OUTPUT)

    properties = import_hardening_properties("munin-node.service")

    assert fake_run.calls == [["systemctl", "show", "munin-node.service"]]
    assert [p.literal for p in properties] == [
        "ProtectHome=yes",
        "User=root",
        "LimitNOFILE=524288",
        "PrivateTmp=yes",
        "ReadWritePaths=/var/lib/munin-node /var/log/munin",
    ]


def test_import_logs_count(fake_run, caplog):
    fake_run.queue(stdout="ProtectHome=yes\n")
    with caplog.at_level(logging.DEBUG, logger="noderun"):
        import_hardening_properties("munin-node.service", systemctl="/bin/systemctl")
    assert fake_run.calls[0][0] == "/bin/systemctl"
    assert "Imported 1 properties from munin-node.service" in caplog.text


def test_import_with_empty_output(fake_run):
    fake_run.queue(stdout="")
    assert import_hardening_properties("munin-node.service") == []


def test_import_fails_on_nonzero_exit(fake_run):
    fake_run.queue(returncode=1, stdout="")
    with pytest.raises(PropertyImportError):
        import_hardening_properties("munin-node.service")


def test_import_fails_without_systemctl(fake_run):
    fake_run.queue_error(FileNotFoundError("systemctl"))
    with pytest.raises(PropertyImportError):
        import_hardening_properties("munin-node.service")


def test_parse_rejects_lines_without_assignment():
    with pytest.raises(ValueError):
        HardeningProperty.parse("ProtectHome")
