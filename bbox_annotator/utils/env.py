import logging
from gettext import gettext as _
from typing import Any, Dict, Mapping

from easydict import EasyDict as edict

logger = logging.getLogger(__name__)

ENV_PREFIX = "BBOX_"

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _coerce(value: Any, default: Any) -> Any:
    if not isinstance(value, str) or default is None:
        return value
    # bool is checked first, it is a subclass of int
    if isinstance(default, bool):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def load_cfg_from_env(cfg: edict, env: Mapping[str, Any], prefix: str = ENV_PREFIX):
    for k, v in env.items():
        if k.startswith(prefix):
            cfgkey = k[len(prefix):].replace("__", ".")
            logger.warning(
                _(
                    "Changing configuration entry from environment variable: {k}={v}"
                ).format(
                    k=cfgkey, v=v
                )  # noqa:E501
            )  # noqa: E501
            *parts, last = cfgkey.split(".")
            this_cfg = cfg
            for part in parts:
                if this_cfg.get(part) is None:
                    this_cfg[part] = edict()
                this_cfg = this_cfg[part]
            this_cfg[last] = _coerce(v, this_cfg.get(last))
    return cfg


def env_overrides(env: Mapping[str, Any], prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """Return only the entries of ``env`` that would touch the configuration."""
    return {k: v for k, v in env.items() if k.startswith(prefix)}
