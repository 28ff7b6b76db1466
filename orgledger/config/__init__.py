from .config import AppConfig, BaseConfig
