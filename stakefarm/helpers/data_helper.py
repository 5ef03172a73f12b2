import json
import pathlib
from typing import Any, Dict, List, Optional

from ..models import TokenType
from .logging_helper import LoggingHelper


class DataHelper:
    """
    Handles the loading and validation of the bundled JSON data files.
    Parses raw JSON into structured dataclass objects and never writes to the data path.
    """

    FALLBACK_TOKEN_TYPES = [
        {"id": "base", "name": "BASE", "growth_time_ms": 30000, "rarity": "common",
         "unlock_level": 1, "description": "The foundation token"},
        {"id": "eth", "name": "ETH", "growth_time_ms": 45000, "rarity": "rare",
         "unlock_level": 3, "description": "Ethereum's native token"},
        {"id": "usdc", "name": "USDC", "growth_time_ms": 60000, "rarity": "epic",
         "unlock_level": 5, "description": "Stable and reliable"},
        {"id": "onchain", "name": "ONCHAIN", "growth_time_ms": 90000, "rarity": "legendary",
         "unlock_level": 8, "description": "The future is onchain"},
    ]

    def __init__(self, data_path_obj: pathlib.Path, logger: LoggingHelper):
        self.data_path = data_path_obj
        self.logger = logger

        self.token_types: List[TokenType] = []
        self.token_types_by_id: Dict[str, TokenType] = {}

    def load_all_data(self):
        """Master method to load all data files."""

        self.logger.log("Data loading process initiated.", "INFO")

        self.token_types = self._load_token_types_data()
        self.token_types_by_id = {t.id: t for t in self.token_types}

        self.logger.log("All data files loaded and processed.", "INFO")

    def _load_json_file(self, filename: str, default_data: Any) -> Any:
        """Generic JSON file loader with validation and logging. Does not write to disk."""

        file_path = self.data_path / filename
        log_prefix = f"Data Load ({filename}): "
        try:
            if file_path.exists():
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)

                if data:
                    self.logger.log(f"{log_prefix}Successfully loaded {len(data)} entries.", "INFO")
                    return data
                else:
                    self.logger.log(f"{log_prefix}File is empty. Using default fallback data.", "WARNING")
                    return default_data
            else:
                self.logger.log(
                    f"{log_prefix}File not found. This is a critical error if not intended. "
                    "Using default fallback data.", "ERROR"
                )
                return default_data
        except (json.JSONDecodeError, OSError) as e:
            self.logger.log(f"{log_prefix}Failed to load or parse: {e}. Using default fallback data.", "ERROR")
            return default_data

    def _load_token_types_data(self) -> List[TokenType]:
        data = self._load_json_file("token_types.json", self.FALLBACK_TOKEN_TYPES)

        token_types = []
        for t_dict in data:
            if 'name' not in t_dict:
                t_dict['name'] = t_dict['id'].upper()
            try:
                token_types.append(TokenType(**t_dict))
            except TypeError as e:
                self.logger.log(f"Data Load (token_types.json): Skipping malformed entry {t_dict!r}: {e}", "WARNING")

        if not token_types:
            token_types = [TokenType(**t_dict) for t_dict in self.FALLBACK_TOKEN_TYPES]
        return sorted(token_types, key=lambda t: t.unlock_level)

    def get_token_type(self, token_id: str) -> Optional[TokenType]:
        return self.token_types_by_id.get(token_id.lower())

    def get_available_token_types(self, level: int) -> List[TokenType]:
        return [t for t in self.token_types if level >= t.unlock_level]
