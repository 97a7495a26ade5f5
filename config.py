"""
config.py – Application configuration and constants.

This module defines AppConfig, a central container for:
  - All application-wide constants (file names, date format, crypto sizes).
  - The user configuration (autosave, key-derivation work factor, …) stored
    as a JSON file on disk and exposed through a simple dict-like interface.
  - Helper utilities shared across modules: OS-appropriate data-directory
    resolution and logger setup.

No other application module is imported here, so config.py sits at the bottom
of the dependency graph and can be safely imported by any other module.
"""

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import appdirs

# ---------------------------------------------------------------------------
# Application-level constants – these never change at runtime.
# ---------------------------------------------------------------------------

APP_NAME = "Keychain"

# Human-readable application version shown by --help.
APP_VERSION = "1.0.0"

# Name of the vault file inside the user-data directory.
DATA_FILE_NAME = "keychain_data.json"

# Format the user types and sees dates in (day.month.year).
DATE_FORMAT = "%d.%m.%Y"

# Format dates are stored in inside the vault file.
STORED_DATE_FORMAT = "%Y-%m-%d"

# Version of the vault file layout written by storage.VaultFile.
VAULT_FORMAT_VERSION = 1

# ---------------------------------------------------------------------------
# Default values written to config.json on first run.
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: dict = {
    # PBKDF2 iterations used when a new vault is created.
    "kdf_iterations": 390_000,
    # Write the vault after every add / edit / delete.
    "autosave": True,
    # Clear the terminal between menu screens.
    "clear_screen": True,
}


class AppConfig:
    """
    Manages application configuration, file paths and logging.

    On instantiation the class:
      1. Resolves the OS-appropriate user-data directory.
      2. Derives all relevant file paths from that directory.
      3. Sets up a rotating log handler.
      4. Loads (or creates) the JSON configuration file.

    Parameters
    ----------
    user_data_dir : str, optional
        Directory to keep all persistent data in.  Defaults to the
        appdirs user-data directory for APP_NAME.
    vault_path : str, optional
        Explicit vault file, overriding the one in *user_data_dir*.

    Attributes
    ----------
    user_data_dir : str
        Absolute path of the directory that stores all persistent data.
    vault_path : str
        The JSON vault file holding every record.
    config_path : str
        JSON configuration file.
    log_path : str
        Rotating application log.
    data : dict
        The currently loaded configuration values (mutable at runtime).
    logger : logging.Logger
        Shared Python logger for the whole application.
    """

    def __init__(
        self,
        user_data_dir: Optional[str] = None,
        vault_path: Optional[str] = None,
    ) -> None:
        # --- Resolve (and create) the persistent data directory ---
        self.user_data_dir: str = self._get_user_data_dir(user_data_dir)

        # --- Derive all file paths from the data directory ---
        self.vault_path:  str = vault_path or os.path.join(self.user_data_dir, DATA_FILE_NAME)
        self.config_path: str = os.path.join(self.user_data_dir, "config.json")
        self.log_path:    str = os.path.join(self.user_data_dir, "app.log")

        # --- Configure the rotating log handler ---
        self.logger: logging.Logger = self._setup_logger()

        # --- Load or create the JSON configuration ---
        self.data: dict = self._load()

        self.logger.info("AppConfig initialised; data dir: %s", self.user_data_dir)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_user_data_dir(path: Optional[str] = None) -> str:
        """
        Return (and create if necessary) the user-data directory.

        Uses *appdirs* to find the OS-standard location unless an explicit
        *path* is given.
        """
        if path is None:
            path = appdirs.user_data_dir(APP_NAME)
        os.makedirs(path, exist_ok=True)
        return path

    def _setup_logger(self) -> logging.Logger:
        """
        Create and configure a rotating file logger for the whole application.

        The log rotates at 2 MB and keeps up to 3 backup files.
        Duplicate handlers are avoided if the logger already exists
        (e.g. when several AppConfig objects are created in one process).
        """
        logger = logging.getLogger(APP_NAME)
        logger.setLevel(logging.DEBUG)

        if not logger.handlers:
            handler = RotatingFileHandler(
                self.log_path,
                maxBytes=2_000_000,
                backupCount=3,
                encoding="utf-8",
            )
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
            )
            logger.addHandler(handler)

        return logger

    def _load(self) -> dict:
        """
        Read config.json from disk.

        Missing keys are back-filled from DEFAULT_CONFIG so that new
        settings introduced in later versions are always present.

        Returns the loaded (or default) configuration dictionary.
        """
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, "r", encoding="utf-8") as fh:
                    cfg = json.load(fh)
                if not isinstance(cfg, dict):
                    raise ValueError("config.json does not hold an object")
                for key, value in DEFAULT_CONFIG.items():
                    cfg.setdefault(key, value)
                return cfg
        except (OSError, ValueError):
            self.logger.exception("Failed to load config; using defaults")

        return dict(DEFAULT_CONFIG)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Persist the current configuration dictionary to disk as JSON."""
        try:
            with open(self.config_path, "w", encoding="utf-8") as fh:
                json.dump(self.data, fh, indent=2)
            self.logger.info("Config saved")
        except OSError:
            self.logger.exception("Failed to save config")

    def get(self, key: str, default=None):
        """Return a configuration value by key, or *default* if not found."""
        return self.data.get(key, default)

    def set(self, key: str, value) -> None:
        """
        Update a configuration value in memory.

        Call save() afterwards to persist the change to disk.
        """
        self.data[key] = value
