"""
Configuration Utilities for the Donation Tax Advisor
Loads app settings from app_config.json with environment overrides,
provides calculator defaults and sets up logging.
"""

import json
import logging
import os
from typing import Dict, Any

logger = logging.getLogger(__name__)

CONFIG_FILE = 'app_config.json'

DEFAULT_APP_CONFIG: Dict[str, Any] = {
    'gemini_api_key': '',
    'gemini_model': 'gemini-2.5-flash',
    'whitelist_path': 'whitelist.json',
    'booking_url': 'https://aitaxcalculator.hybridfoundation.org/68c370a4844cc2003c2092e0/page_yyrxpw/',
    'log_level': 'INFO',
}

# Environment variable -> config key
ENV_OVERRIDES = {
    'GEMINI_API_KEY': 'gemini_api_key',
    'GEMINI_MODEL': 'gemini_model',
    'WHITELIST_PATH': 'whitelist_path',
    'BOOKING_URL': 'booking_url',
    'TAX_ADVISOR_LOG_LEVEL': 'log_level',
}


def load_app_config(path: str = CONFIG_FILE) -> Dict[str, Any]:
    """Load app configuration from JSON, falling back to defaults, then apply env overrides"""
    config = dict(DEFAULT_APP_CONFIG)

    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
            config.update(file_config)
            logger.debug("Loaded %d config keys from %s", len(file_config), path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load %s, using defaults: %s", path, e)

    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    return config


def save_app_config(config: Dict[str, Any], path: str = CONFIG_FILE) -> None:
    """Save app configuration to JSON"""
    with open(path, 'w') as f:
        json.dump(config, f, indent=2)
    logger.info("Saved %d config keys to %s", len(config), path)


def configure_logging(config: Dict[str, Any]) -> None:
    """Set the root log level and format from config"""
    level_name = str(config.get('log_level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def get_default_calculator_inputs() -> Dict[str, str]:
    """Default form values for the savings calculator"""
    return {
        'annualIncome': '',
        'currentTaxRate': '',
        'donationAmount': '',
        'filingStatus': 'single',
    }


def get_default_evaluation_inputs() -> Dict[str, str]:
    """Default form values for the donation targeting form"""
    return {
        'targetTaxSavings': '',
        'annualIncome': '',
        'filingStatus': 'single',
        'currentDeductions': '',
    }
