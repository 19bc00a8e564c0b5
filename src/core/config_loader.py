import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from core.exceptions import StoreIOError

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and atomically saves the sensor mapping JSON document."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else self.get_config_path()

    @staticmethod
    def get_config_path() -> Path:
        """Get the default path to the sensors.json file."""
        # Config file lives in the project root/config directory
        return Path(__file__).parent.parent.parent / "config" / "sensors.json"

    def set_config_path(self, config_path: Union[str, Path]):
        self.config_path = Path(config_path)

    def load(self) -> Dict[str, Any]:
        """
        Load the document from disk.
        A missing file is an empty configuration; an unreadable or corrupt one
        raises StoreIOError so it is never silently overwritten.
        """
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}, starting empty")
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse configuration file {self.config_path}: {e}")
            raise StoreIOError(f"Corrupt configuration file {self.config_path}: {e}") from e
        except OSError as e:
            logger.error(f"Failed to read configuration file {self.config_path}: {e}")
            raise StoreIOError(f"Cannot read configuration file {self.config_path}: {e}") from e

        if not isinstance(document, dict):
            raise StoreIOError(f"Configuration file {self.config_path} must contain a JSON object")

        logger.info(f"Configuration loaded from {self.config_path}")
        return document

    def save(self, document: Dict[str, Any]):
        """Write the document next to its target, then rename it into place."""
        directory = self.config_path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.config_path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.config_path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save configuration to {self.config_path}: {e}")
            raise StoreIOError(f"Cannot write configuration file {self.config_path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.debug(f"Configuration saved to {self.config_path}")


# Global instance
config_loader = ConfigLoader()
