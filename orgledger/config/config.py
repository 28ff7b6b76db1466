"""
Config classes that read the process environment, optionally seeded from a .env file.
"""
import os
import logging
from abc import abstractmethod
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dotenv import load_dotenv

from orgledger.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_EXPIRATION = 30 * 24 * 60 * 60
TRUE_VALUES = {'1', 'true', 'yes', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


class BaseConfig():
    """
    Config class that snapshots the environment after loading a .env file.
    """
    def __init__(self, env_file: Optional[str] = None):
        load_dotenv(env_file)
        # Get all environment variables and store them in a dictionary
        self.env_vars = {key: os.getenv(key) for key in os.environ}

    def get_env_var(self, var_name: str, default: Optional[str] = None):
        """
        Retrieve the value of the specified environment variable
        Args:
            var_name (str) : Name of the env var to fetch
            default (str) : Value returned when the variable is not set
        """
        if var_name in self.env_vars.keys():
            return self.env_vars[var_name]
        if default is None:
            logger.warning("Variable %s not found.", var_name)
        return default

    def get_var_as_list(self, var_name: str) -> Optional[List[str]]:
        """
        Returns a comma-delimited var as list
        """
        if var_name in self.env_vars.keys():
            return [item.strip() for item in self.env_vars[var_name].split(",") if item.strip()]
        logger.warning("Warning: var %s not found.", var_name)
        return None

    @abstractmethod
    def validate_env_vars(self):
        """
        Abstract method for validation of the env vars.
        """


class AppConfig(BaseConfig):
    """
    Settings for the service. Call `validate_env_vars()` before use.
    """

    REQUIRED_ENV_VARS = ['MONGO_URI', 'MONGO_DATABASE', 'TOKEN_SECRET']

    @property
    def mongo_uri(self) -> str:
        return self.get_env_var('MONGO_URI')

    @property
    def mongo_database(self) -> str:
        return self.get_env_var('MONGO_DATABASE')

    @property
    def token_secret(self) -> str:
        return self.get_env_var('TOKEN_SECRET')

    @property
    def token_expiration(self) -> int:
        return int(self.get_env_var('TOKEN_EXPIRATION', str(DEFAULT_TOKEN_EXPIRATION)))

    @property
    def report_timezone(self) -> str:
        return self.get_env_var('REPORT_TIMEZONE', 'UTC')

    @property
    def strict_access_check(self) -> bool:
        return self.get_env_var('STRICT_ACCESS_CHECK', 'false').strip().lower() in TRUE_VALUES

    @property
    def allowed_origins(self) -> List[str]:
        return self.get_var_as_list('ALLOWED_ORIGINS') or []

    def validate_env_vars(self):
        """
        Raise ConfigurationError naming every missing or malformed variable.
        """
        problems = [f"{name} is required" for name in self.REQUIRED_ENV_VARS
                    if not self.env_vars.get(name)]

        try:
            if self.token_expiration <= 0:
                problems.append("TOKEN_EXPIRATION must be a positive number of seconds")
        except ValueError:
            problems.append("TOKEN_EXPIRATION must be an integer")

        try:
            ZoneInfo(self.report_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"REPORT_TIMEZONE '{self.report_timezone}' is not a known timezone")

        strict = self.get_env_var('STRICT_ACCESS_CHECK', 'false').strip().lower()
        if strict not in TRUE_VALUES | FALSE_VALUES:
            problems.append("STRICT_ACCESS_CHECK must be true or false")

        if problems:
            raise ConfigurationError(problems)
        return True
