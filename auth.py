"""
auth.py – Passphrase handling and session start-up.

This module contains AuthManager, which turns a passphrase into a live
Session:

  - First run (no vault file yet): ask for a new passphrase twice, generate a
    fresh salt and key check, and write an empty vault.
  - Subsequent runs: ask for the passphrase, derive the key with the vault's
    salt and verify it against the stored key check.  A wrong passphrase is
    re-prompted; a wrong passphrase given on the command line is fatal.
  - Unreadable vault: back the file up, warn the user and start with an
    empty vault under the passphrase just entered.

The passphrase is never logged or stored; only the derived key survives,
inside the session's FieldCipher.
"""

import getpass
import logging
from typing import Callable, Optional

from config import AppConfig
from crypto import FieldCipher, KeyDerivation, WrongPassphraseError
from records import VaultStore
from session import Session
from storage import PersistenceError, VaultData, VaultFile

logger = logging.getLogger("Keychain")


class AuthManager:
    """
    Opens the vault for one session.

    Parameters
    ----------
    config : AppConfig
        Application configuration and file-path provider.
    vault_file : VaultFile, optional
        Defaults to a VaultFile at config.vault_path.
    prompt : callable
        Reads a passphrase without echo (getpass.getpass by default).
    output : callable
        Prints messages for the user (print by default).
    """

    def __init__(
        self,
        config: AppConfig,
        vault_file: Optional[VaultFile] = None,
        prompt: Callable[[str], str] = getpass.getpass,
        output: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self.vault_file = vault_file or VaultFile(config.vault_path)
        self.prompt = prompt
        self.output = output

    # ------------------------------------------------------------------
    # Startup entry point
    # ------------------------------------------------------------------

    def open_session(self, passphrase: Optional[str] = None) -> Session:
        """
        Return a Session for the vault, creating the vault on first run.

        *passphrase* comes from the command line; when it is None or empty
        the user is prompted instead.

        Raises
        ------
        WrongPassphraseError
            If a command-line passphrase does not open the vault.
        PersistenceError
            If a new vault cannot be written or a broken one cannot be
            backed up.
        """
        try:
            data = self.vault_file.load()
        except PersistenceError as exc:
            logger.error("Vault could not be loaded: %s", exc)
            backup = self.vault_file.backup()
            self.output(f"Vault file is unreadable: {exc}")
            self.output(f"A copy was saved to {backup}; starting with an empty vault.")
            data = None

        if data is None:
            return self._create_vault(passphrase)
        return self._unlock(data, passphrase)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def _create_vault(self, passphrase: Optional[str]) -> Session:
        if not passphrase:
            passphrase = self._prompt_create_passphrase()

        kdf = KeyDerivation.generate(int(self.config.get("kdf_iterations")))
        cipher = FieldCipher.from_passphrase(passphrase, kdf)
        session = self._build_session(VaultData(kdf, cipher.create_keycheck()), cipher)
        session.save()
        logger.info("Created new vault at %s", self.vault_file.path)
        return session

    def _unlock(self, data: VaultData, passphrase: Optional[str]) -> Session:
        from_command_line = bool(passphrase)

        while True:
            if not passphrase:
                passphrase = self._prompt_passphrase("Enter password: ")

            cipher = FieldCipher.from_passphrase(passphrase, data.kdf)
            if cipher.verify_keycheck(data.keycheck):
                logger.info("Vault unlocked")
                return self._build_session(data, cipher)

            logger.warning("Wrong passphrase entered")
            if from_command_line:
                raise WrongPassphraseError("The password does not open this vault.")
            self.output("Wrong password, try again.")
            passphrase = None

    def _build_session(self, data: VaultData, cipher: FieldCipher) -> Session:
        return Session(
            vault_file=self.vault_file,
            kdf=data.kdf,
            keycheck=data.keycheck,
            cipher=cipher,
            store=VaultStore(data.records),
            autosave=bool(self.config.get("autosave", True)),
        )

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _prompt_passphrase(self, label: str) -> str:
        """Prompt until a non-empty passphrase is entered."""
        passphrase = ""
        while not passphrase:
            passphrase = self.prompt(label)
        return passphrase

    def _prompt_create_passphrase(self) -> str:
        """Ask for a new passphrase twice until both entries match."""
        self.output("No vault found; a new one will be created.")
        while True:
            first = self._prompt_passphrase("New password: ")
            second = self.prompt("Repeat password: ")
            if first == second:
                return first
            self.output("Passwords do not match.")
