"""
session.py – The live state of one run of the keychain.

A Session is created once by AuthManager after the passphrase has been
verified and is then handed to the console UI.  It owns:

  - the FieldCipher holding the derived key (kept in memory only),
  - the VaultStore with the loaded records,
  - the VaultFile and vault header needed to save.

Every operation the UI performs goes through the session, which delegates to
the store and cipher and, when autosave is enabled, writes the vault after
each successful mutation.
"""

import datetime
import logging
from typing import List, Optional, Sequence

from crypto import FieldCipher, KeyDerivation
from records import Field, FieldEdit, Record, VaultStore, reveal
from storage import VaultData, VaultFile

logger = logging.getLogger("Keychain")


class Session:
    """
    Session context passed to every core operation.

    Parameters
    ----------
    vault_file : VaultFile
        Where the vault is saved.
    kdf : KeyDerivation
        Key-derivation parameters of the vault.
    keycheck : bytes
        Key-check blob of the vault.
    cipher : FieldCipher
        Cipher built from the session passphrase.
    store : VaultStore
        The records of this session.
    autosave : bool
        Save after every add / edit / delete.
    """

    def __init__(
        self,
        vault_file: VaultFile,
        kdf: KeyDerivation,
        keycheck: bytes,
        cipher: FieldCipher,
        store: VaultStore,
        autosave: bool = True,
    ) -> None:
        self.vault_file = vault_file
        self.kdf = kdf
        self.keycheck = keycheck
        self.cipher = cipher
        self.store = store
        self.autosave = autosave

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def records(self) -> List[Record]:
        return self.store.records()

    def get(self, position: int) -> Record:
        return self.store.get(position)

    def reveal(self, record: Record, which: Field) -> Optional[str]:
        """Decrypt one secret field for display; see records.reveal()."""
        return reveal(record, which, self.cipher)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_record(
        self,
        domain: str,
        date: datetime.date,
        subdomains: Sequence[str] = (),
        login: Optional[str] = None,
        password: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> int:
        """Create, encrypt and store a new record; return its position."""
        record = Record.create(
            self.cipher, domain, date,
            subdomains=subdomains, login=login, password=password, remark=remark,
        )
        position = self.store.add(record)
        self._autosave()
        return position

    def edit_record(self, position: int, edit: FieldEdit) -> Record:
        record = self.store.update_field(position, edit, self.cipher)
        self._autosave()
        return record

    def delete_record(self, position: int) -> Record:
        record = self.store.delete(position)
        self._autosave()
        return record

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write the vault file; raises PersistenceError on failure."""
        self.vault_file.save(VaultData(self.kdf, self.keycheck, self.store.records()))

    def _autosave(self) -> None:
        if self.autosave:
            self.save()
