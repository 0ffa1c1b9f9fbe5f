from .settings import Config, load_config, save_config
from .defaults import BUNDLED_REFERENCE_IMAGE, DEFAULT_CONFIG

__all__ = ["Config", "load_config", "save_config", "DEFAULT_CONFIG", "BUNDLED_REFERENCE_IMAGE"]
