# srbot/services/config_service.py
import json
import logging
import os
from typing import Optional, Any, Dict

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "data/settings.json"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///data/srbot.db"

# environment variable -> RollSettings field
ENV_OVERRIDES = {
    "SR_APPLY_LIMITS": "apply_limits",
    "SR_DISPLAY_DEFAULT_ROLL_CARD": "display_default_roll_card",
    "SR_EXTENDED_TEST_DELAY": "extended_test_delay",
    "SR_LANGUAGE": "language",
    "DATABASE_URL": "database_url",
}


class RollSettings(BaseModel):
    """Global switches consulted by the roll engine."""
    apply_limits: bool = True
    display_default_roll_card: bool = False
    extended_test_delay: float = 0.4
    language: str = "en"
    database_url: str = DEFAULT_DATABASE_URL


class ConfigService:
    """
    Service for reading configuration data from a JSON file, with environment
    variable overrides for the roll settings.
    """

    def __init__(self, settings_path: str = DEFAULT_SETTINGS_PATH, use_env: bool = True):
        """
        Initializes the ConfigService and loads configuration data.

        Args:
            settings_path: Path to the JSON settings file.
            use_env: Whether SR_* / DATABASE_URL environment variables (and a .env file) override the file.
        """
        self.settings_path: str = settings_path
        self.use_env = use_env
        self._config_data: Optional[Dict[str, Any]] = self._load_config()

    def _load_config(self) -> Optional[Dict[str, Any]]:
        """
        Loads the configuration data from the settings file.

        Returns:
            A dictionary containing the configuration data, or None if loading fails.
        """
        try:
            with open(self.settings_path, 'r') as f:
                data = json.load(f)
            return data
        except FileNotFoundError:
            logger.warning(f"ConfigService: Settings file not found at {self.settings_path}, using defaults.")
            return None
        except json.JSONDecodeError:
            logger.error(f"ConfigService: Could not decode JSON from {self.settings_path}, using defaults.")
            return None

    def get_config_section(self, section_name: str) -> Optional[Any]:
        """
        Retrieves a specific section from the loaded configuration data.

        Returns:
            The data for the requested section, or None if the section
            is not found or if the configuration was not loaded.
        """
        if self._config_data is None:
            return None
        return self._config_data.get(section_name)

    def get_roll_settings(self) -> RollSettings:
        """
        Builds RollSettings from the "rolls" section, then applies environment overrides.
        Invalid values are logged and replaced by defaults.
        """
        raw: Dict[str, Any] = {}
        section = self.get_config_section("rolls")
        if isinstance(section, dict):
            raw.update(section)
        elif section is not None:
            logger.warning(f"ConfigService: 'rolls' section in {self.settings_path} is not an object, ignoring it.")

        if self.use_env:
            load_dotenv()
            for env_name, field_name in ENV_OVERRIDES.items():
                env_value = os.getenv(env_name)
                if env_value is not None and env_value != "":
                    raw[field_name] = env_value

        try:
            return RollSettings(**raw)
        except ValidationError as e:
            logger.error(f"ConfigService: Invalid roll settings {raw}: {e}. Falling back to defaults.")
            return RollSettings()
