from .loader import ConfigError, load_config, get_config, reload_config
from .schema import SynthConfig

__all__ = [
    "ConfigError",
    "load_config",
    "get_config",
    "reload_config",
    "SynthConfig",
]
