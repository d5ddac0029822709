import json

from compass.prefs import BUBBLE_SEEN_KEY, MODE_KEY, JsonFilePreferenceStore, PreferenceStore, open_preferences


def test_json_file_preferences_survive_reopen(tmp_path):
    path = tmp_path / "prefs.json"
    prefs = open_preferences(str(path))
    assert isinstance(prefs, JsonFilePreferenceStore)

    prefs.set(MODE_KEY, "assisted")
    prefs.set(BUBBLE_SEEN_KEY, True)

    assert json.loads(path.read_text()) == {MODE_KEY: "assisted", BUBBLE_SEEN_KEY: True}
    reopened = JsonFilePreferenceStore(str(path))
    assert reopened.get(MODE_KEY) == "assisted"
    assert reopened.get(BUBBLE_SEEN_KEY) is True


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json")
    prefs = JsonFilePreferenceStore(str(path))
    assert prefs.get(MODE_KEY) is None
    assert prefs.get(MODE_KEY, "quick") == "quick"


def test_no_path_means_in_memory():
    prefs = open_preferences(None)
    assert type(prefs) is PreferenceStore
    prefs.set(MODE_KEY, "quick")
    assert prefs.get(MODE_KEY) == "quick"
