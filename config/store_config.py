"""
Store Configuration Manager
Handles loading and saving timeline store preferences in a JSON file:
paging and ingestion settings, the default index columns, PostgreSQL
connection defaults and logging preferences.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, List, Optional

from models.event import DEFAULT_INDEX_FIELDS, is_valid_field

logger = logging.getLogger(__name__)


class StoreConfig:
    """
    Manages timeline store preferences.
    Passwords are never written to the configuration file.
    """

    DEFAULT_CONFIG = {
        'database': {
            'page_size': 1000,
            'progress_interval': 10000,
            'index_fields': list(DEFAULT_INDEX_FIELDS),
        },
        'postgres': {
            'host': 'localhost',
            'port': '5432',
            'dbname': '',
            'user': '',
            'sslmode': 'disable',
        },
        'logging': {
            'level': 'INFO',
            'file': None,
            'persist': False,
        },
    }

    SECTIONS = ('database', 'postgres', 'logging')

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path to configuration file (optional)
        """
        self.config_file = config_file
        self.config: Dict[str, Dict[str, Any]] = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file and os.path.exists(config_file):
            self.load()

    def load(self) -> None:
        """Load preferences from the configuration file."""
        if not self.config_file or not os.path.exists(self.config_file):
            return
        if os.path.getsize(self.config_file) == 0:
            return

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading configuration {self.config_file}: {e}")
            return

        for section in self.SECTIONS:
            if isinstance(data.get(section), dict):
                values = dict(data[section])
                values.pop('password', None)
                self.config[section].update(values)

    def save(self) -> None:
        """Save preferences, keeping unrelated sections of an existing file."""
        if not self.config_file:
            return

        existing_data: Dict[str, Any] = {}
        if os.path.exists(self.config_file) and os.path.getsize(self.config_file) > 0:
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    existing_data = json.load(f)
            except json.JSONDecodeError:
                existing_data = {}

        for section in self.SECTIONS:
            existing_data[section] = copy.deepcopy(self.config[section])
        existing_data['postgres'].pop('password', None)

        config_dir = os.path.dirname(self.config_file)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(existing_data, f, indent=2)
        logger.debug(f"Configuration saved to {self.config_file}")

    def get_page_size(self) -> int:
        return int(self.config['database'].get('page_size', 1000))

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError(f"page size must be positive, got {page_size}")
        self.config['database']['page_size'] = page_size
        self.save()

    def get_progress_interval(self) -> int:
        return int(self.config['database'].get('progress_interval', 10000))

    def get_index_fields(self) -> List[str]:
        """Configured index columns, dropping any name that is not a known column."""
        fields = self.config['database'].get('index_fields') or DEFAULT_INDEX_FIELDS
        valid = [f for f in fields if is_valid_field(f)]
        if len(valid) != len(fields):
            logger.warning(f"Ignoring unknown index fields: {sorted(set(fields) - set(valid))}")
        return valid

    def set_index_fields(self, fields: List[str]) -> None:
        invalid = [f for f in fields if not is_valid_field(f)]
        if invalid:
            raise ValueError(f"invalid index fields: {', '.join(invalid)}")
        self.config['database']['index_fields'] = list(fields)
        self.save()

    def get_postgres_settings(self) -> Dict[str, str]:
        """Host, port, dbname, user and sslmode for PostgreSQL connections."""
        return {key: str(value) for key, value in self.config['postgres'].items()}

    def set_postgres_settings(self, **settings: str) -> None:
        settings.pop('password', None)
        self.config['postgres'].update(settings)
        self.save()

    def get_log_level(self) -> str:
        return str(self.config['logging'].get('level', 'INFO'))

    def get_log_file(self) -> Optional[str]:
        return self.config['logging'].get('file')

    def get_log_persist(self) -> bool:
        return bool(self.config['logging'].get('persist', False))

    def set_logging(self, level: Optional[str] = None, log_file: Optional[str] = None,
                    persist: Optional[bool] = None) -> None:
        """
        Update logging preferences. Only persisted when ``persist`` is set.

        Args:
            level: Level name such as 'DEBUG'
            log_file: Log file path
            persist: Remember these settings across runs
        """
        if level is not None:
            self.config['logging']['level'] = level.upper()
        if log_file is not None:
            self.config['logging']['file'] = log_file
        if persist is not None:
            self.config['logging']['persist'] = persist
        if self.get_log_persist() or persist is False:
            self.save()

    def reset_to_defaults(self, section: Optional[str] = None) -> None:
        """Reset one section (or all of them) to defaults."""
        if section:
            if section not in self.DEFAULT_CONFIG:
                raise ValueError(f"unknown configuration section: {section}")
            self.config[section] = copy.deepcopy(self.DEFAULT_CONFIG[section])
        else:
            self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()
