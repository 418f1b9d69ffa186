from .config import UNCLASSIFIED, get_default_config, load_config


def test_default_config_values():
    cfg = get_default_config()
    assert cfg.history.max_depth == 50
    assert cfg.editing.border_tolerance == 2
    assert cfg.editing.min_size == 1
    assert cfg.editing.nudge_debounce == 0.1
    assert cfg.editing.avoid_overlap is False
    assert cfg.classes.unclassified == UNCLASSIFIED


def test_default_config_is_fresh_each_time():
    a = get_default_config()
    a.editing.min_size = 10
    assert get_default_config().editing.min_size == 1


def test_load_config_from_env():
    cfg = load_config({"BBOX_history__max_depth": "5", "PATH": "/bin"})
    assert cfg.history.max_depth == 5
    assert cfg.editing.min_size == 1
