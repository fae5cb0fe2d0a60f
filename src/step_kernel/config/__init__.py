from .loader import ConfigError, load_run_config, load_yaml_config
from .models import LoggingConfig, RunConfig

__all__ = ["ConfigError", "LoggingConfig", "RunConfig", "load_run_config", "load_yaml_config"]
