import json

import pytest

from conftest import write_config
from ctrldeck.app.services.config_store import (
    BUTTONS_FILE,
    SCRIPTS_FILE,
    WIDGETS_FILE,
    ConfigStoreError,
    JsonConfigStore,
)


def test_initialize_creates_default_files(tmp_path):
    store = JsonConfigStore(tmp_path / "fresh")

    store.initialize()

    assert [button.action_type for button in store.list_buttons()] == ["mute_mic", "volume_up", "volume_down"]
    assert store.list_scripts() == []
    assert [widget.type for widget in store.list_widgets()] == ["cpu", "ram", "battery"]


def test_initialize_keeps_existing_files(config_dir):
    write_config(config_dir, BUTTONS_FILE, [{"id": "mine", "action_type": "open_url", "action_data": {"url": "x"}}])
    store = JsonConfigStore(config_dir)

    store.initialize()

    assert [button.id for button in store.list_buttons()] == ["mine"]
    assert (config_dir / SCRIPTS_FILE).exists()
    assert json.loads((config_dir / WIDGETS_FILE).read_text())


def test_buttons_are_sorted_and_action_data_stringified(config_dir):
    write_config(
        config_dir,
        BUTTONS_FILE,
        [
            {"id": "b", "action_type": "volume_up", "action_data": {"step": 10}, "position": 2},
            {"id": "a", "action_type": "set_volume", "action_data": {"level": None}, "position": 1},
        ],
    )
    store = JsonConfigStore(config_dir)

    buttons = store.list_buttons()

    assert [button.id for button in buttons] == ["a", "b"]
    assert buttons[0].action_data == {"level": ""}
    assert buttons[1].action_data == {"step": "10"}


def test_invalid_entries_are_skipped(config_dir):
    write_config(config_dir, BUTTONS_FILE, [{"name": "no id"}, {"id": "ok", "action_type": "mute_mic"}])

    assert [button.id for button in JsonConfigStore(config_dir).list_buttons()] == ["ok"]


def test_lookup_by_id(config_dir):
    write_config(config_dir, SCRIPTS_FILE, [{"id": "backup", "name": "Backup", "path": "/opt/backup.sh"}])
    store = JsonConfigStore(config_dir)

    assert store.get_script("backup").path == "/opt/backup.sh"
    assert store.get_script("missing") is None
    assert store.get_button("missing") is None


def test_unreadable_file_raises(config_dir):
    (config_dir / BUTTONS_FILE).write_text("{not json")

    with pytest.raises(ConfigStoreError):
        JsonConfigStore(config_dir).list_buttons()


def test_non_list_payload_raises(config_dir):
    write_config(config_dir, SCRIPTS_FILE, {"id": "x"})

    with pytest.raises(ConfigStoreError, match="must contain a JSON list"):
        JsonConfigStore(config_dir).list_scripts()


def test_non_utf8_file_raises_config_error(config_dir):
    (config_dir / BUTTONS_FILE).write_bytes(b'[{"id": "\xff"}]')

    with pytest.raises(ConfigStoreError, match="Cannot read"):
        JsonConfigStore(config_dir).get_button("x")
