"""
main.py – Application entry point.

This file is intentionally minimal.  All logic lives in specialised modules:

  config.py   – AppConfig      : constants, file paths, config I/O, logging
  crypto.py   – KeyDerivation,
                FieldCipher    : PBKDF2 key derivation, AES-GCM field blobs
  records.py  – Record,
                VaultStore     : credential records, sorted position access
  storage.py  – VaultFile      : JSON vault file load / atomic save / backup
  session.py  – Session        : cipher + store + file for one run
  auth.py     – AuthManager    : passphrase prompts, vault creation, unlock
  ui.py       – ConsoleUI      : terminal menu, all user interaction

To run the application:
    python main.py [-p PASSWORD] [-f FILE]
"""

import argparse
import logging
import sys
from typing import List, Optional

from auth import AuthManager
from config import APP_NAME, APP_VERSION, AppConfig
from crypto import WrongPassphraseError
from storage import PersistenceError
from ui import ConsoleUI

logger = logging.getLogger("Keychain")

DESCRIPTION = """\
About:
    Utility for storing credentials.

Usage:
    keychain [options]
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keychain",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--password", help="vault password (prompted for when omitted)")
    parser.add_argument("-f", "--file", help="vault file (defaults to the user data directory)")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Unlock the vault, run the menu and return the process exit code."""
    args = build_parser().parse_args(argv)
    config = AppConfig(vault_path=args.file)

    try:
        session = AuthManager(config).open_session(args.password)
        ConsoleUI(session, clear_screen=bool(config.get("clear_screen", True))).run()
    except WrongPassphraseError as exc:
        print(f"Error: {exc}")
        return 1
    except PersistenceError as exc:
        logger.error("Vault could not be saved: %s", exc)
        print(f"Input/output error: {exc}")
        return 1
    except (KeyboardInterrupt, EOFError):
        logger.info("Interrupted")
        print()
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
