import logging

import pytest

from noderun.plugins.conf import (
    GroupRequirement,
    PluginConfig,
    PluginConfigError,
    parse_sections,
    read_plugin_config,
    resolve_config,
)

MAIN = """\
# defaults for every plugin
[*]
user nobody
env.lang C

[df*]
group disk, (adm)
env.warning 92

[df]
user root
env.critical 98
"""


def test_exact_section_wins_over_wildcards():
    config = resolve_config("df", parse_sections(MAIN))

    assert config == PluginConfig(
        user="root",
        groups=(GroupRequirement("disk"), GroupRequirement("adm", optional=True)),
        env={"lang": "C", "warning": "92", "critical": "98"},
    )


def test_only_matching_sections_apply():
    config = resolve_config("load", parse_sections(MAIN))
    assert config == PluginConfig(user="nobody", env={"lang": "C"})


def test_directive_outside_section():
    with pytest.raises(PluginConfigError, match="node.conf:1") as excinfo:
        parse_sections("user root\n", source="node.conf")
    assert excinfo.value.exit_code == 78


def test_unknown_directive_is_ignored(caplog):
    with caplog.at_level(logging.DEBUG, logger="noderun"):
        config = resolve_config("df", parse_sections("[df]\ntimeout 30\n"))
    assert config == PluginConfig()
    assert "timeout" in caplog.text


def test_env_values_keep_inner_spaces():
    config = resolve_config("df", parse_sections("[df]\nenv.exclude none unknown  tmpfs\n"))
    assert config.env == {"exclude": "none unknown  tmpfs"}


def test_read_directory_in_name_order(tmp_path):
    conf_dir = tmp_path / "plugin-conf.d"
    conf_dir.mkdir()
    (conf_dir / "a-defaults").write_text("[df]\nuser nobody\nenv.x 1\n", encoding="utf-8")
    (conf_dir / "z-local").write_text("[df]\nuser munin\n", encoding="utf-8")
    (conf_dir / "z-local~").write_text("[df]\nuser backup\n", encoding="utf-8")
    (conf_dir / ".hidden").write_text("[df]\nuser hidden\n", encoding="utf-8")

    config = read_plugin_config("df", conf_dir)

    assert config.user == "munin"
    assert config.env == {"x": "1"}


def test_conf_file_is_read_last(tmp_path):
    conf_dir = tmp_path / "plugin-conf.d"
    conf_dir.mkdir()
    (conf_dir / "munin-node").write_text("[df]\nuser nobody\n", encoding="utf-8")
    extra = tmp_path / "extra.conf"
    extra.write_text("[df]\nuser root\n", encoding="utf-8")

    assert read_plugin_config("df", conf_dir, extra).user == "root"


def test_missing_directory_means_no_configuration(tmp_path):
    assert read_plugin_config("df", tmp_path / "absent") == PluginConfig()


def test_missing_conf_file_is_an_error(tmp_path):
    with pytest.raises(PluginConfigError, match="Cannot read"):
        read_plugin_config("df", None, tmp_path / "absent.conf")
