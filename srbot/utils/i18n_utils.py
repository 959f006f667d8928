import json
import logging
import os
from typing import Dict, Any, List

logger = logging.getLogger(__name__)

_translations: Dict[str, Dict[str, str]] = {}
_i18n_files: List[str] = [
    "game_data/roll_i18n.json"
]
_loaded = False

# Package root (srbot/), so lookups do not depend on the working directory.
_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def load_translations(base_dir: str = "") -> None:
    """
    Loads translation strings from the specified JSON files.
    Merges new translations into the existing _translations dictionary.
    """
    global _translations, _loaded
    base_dir = base_dir or _BASE_DIR

    for file_path_rel in _i18n_files:
        actual_file_path = os.path.join(base_dir, file_path_rel)
        try:
            with open(actual_file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                for lang_code, lang_strings in data.items():
                    if lang_code not in _translations:
                        _translations[lang_code] = {}
                    _translations[lang_code].update(lang_strings)
            logger.debug(f"i18n_utils: Loaded translations from {actual_file_path}")
        except FileNotFoundError:
            logger.warning(f"i18n_utils: Translation file not found: {actual_file_path}")
        except json.JSONDecodeError:
            logger.warning(f"i18n_utils: Error decoding JSON from file: {actual_file_path}")
    _loaded = True


def get_localized_string(key: str, lang: str = "en", default_lang: str = "en", **kwargs: Any) -> str:
    """
    Retrieves a localized string by key and language, and formats it with kwargs.

    Args:
        key: The i18n key for the string (e.g., "SR5.PushTheLimit").
        lang: The desired language code (e.g., "en", "ru").
        default_lang: The fallback language if the desired language or key is not found.
        **kwargs: Placeholder arguments for string formatting.

    Returns:
        The localized and formatted string, or the key itself if not found.
    """
    if not _loaded:
        load_translations()

    for candidate in (lang, default_lang):
        lang_strings = _translations.get(candidate)
        if lang_strings and key in lang_strings:
            try:
                return lang_strings[key].format(**kwargs)
            except KeyError as e:
                logger.warning(f"i18n_utils: Formatting KeyError for key '{key}', lang '{candidate}'. Missing placeholder: {e}")
                return lang_strings[key]

    logger.debug(f"i18n_utils: Key '{key}' not found for language '{lang}' or default '{default_lang}'.")
    return key
