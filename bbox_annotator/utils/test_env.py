import bbox_annotator.utils.i18n  # noqa:F401

from easydict import EasyDict as edict

from .env import load_cfg_from_env


def test_load_cfg_from_env():
    input_dict = {"BBOX_a": 2, "BBOX_eoq__trabson": 3}
    loaded = load_cfg_from_env(edict(), input_dict)
    assert loaded.a == 2
    assert loaded.eoq.trabson == 3


def test_load_cfg_from_env_coerces_to_default_type():
    cfg = edict({"editing": {"min_size": 1, "nudge_debounce": 0.1, "avoid_overlap": False}})
    env = {
        "BBOX_editing__min_size": "3",
        "BBOX_editing__nudge_debounce": "0.25",
        "BBOX_editing__avoid_overlap": "yes",
    }
    loaded = load_cfg_from_env(cfg, env)
    assert loaded.editing.min_size == 3
    assert loaded.editing.nudge_debounce == 0.25
    assert loaded.editing.avoid_overlap is True


def test_load_cfg_from_env_ignores_other_variables():
    loaded = load_cfg_from_env(edict({"a": 1}), {"HOME": "/root", "OTHER_a": 5})
    assert loaded == {"a": 1}
