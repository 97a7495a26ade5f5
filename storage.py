"""
storage.py – Vault file storage and retrieval.

This module contains VaultFile, the single class responsible for all
file I/O related to stored credentials:

  - Reading the vault file into a VaultData (key-derivation header,
    key-check blob and records with their ciphertext blobs untouched).
  - Writing a VaultData back atomically (temporary file + os.replace).
  - Backing up an unreadable vault file so that starting over with an
    empty vault never overwrites it.

The on-disk format is a UTF-8 JSON object:

    {
      "version": 1,
      "kdf": {"algorithm": "pbkdf2-sha256", "salt": "<b64>", "iterations": N},
      "keycheck": "<b64>",
      "records": [
        {"domain": "...", "subdomains": ["..."], "date": "YYYY-MM-DD",
         "login": "<b64>" | null, "password": ..., "remark": ...}
      ]
    }

Secret fields never appear in plaintext; absent fields are written as null.
"""

import base64
import binascii
import datetime
import json
import logging
import os
import shutil
import time
from typing import List, Optional

from config import STORED_DATE_FORMAT, VAULT_FORMAT_VERSION
from crypto import KDF_ALGORITHM, KeyDerivation
from records import SECRET_FIELDS, Record

logger = logging.getLogger("Keychain")


class PersistenceError(Exception):
    """
    Raised when the vault file cannot be read, parsed or written.

    Attributes
    ----------
    path : str
        The vault file involved.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path


class VaultData:
    """
    Everything stored in one vault file.

    Attributes
    ----------
    kdf : KeyDerivation
        Salt and iteration count used to derive the session key.
    keycheck : bytes
        Known token encrypted under the vault key.
    records : list of Record
        Records with their secret fields still encrypted.
    """

    def __init__(self, kdf: KeyDerivation, keycheck: bytes, records=None) -> None:
        self.kdf = kdf
        self.keycheck = keycheck
        self.records: List[Record] = list(records or [])


class VaultFile:
    """
    Reads and writes the JSON vault file.

    Parameters
    ----------
    path : str
        Location of the vault file.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        """Return True if the vault file exists and is not empty."""
        return os.path.exists(self.path) and os.path.getsize(self.path) > 0

    def load(self) -> Optional[VaultData]:
        """
        Read and parse the vault file.

        Returns None when there is no vault yet (missing or empty file).

        Raises
        ------
        PersistenceError
            If the file cannot be read or does not hold a valid vault.
        """
        if not self.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except OSError as exc:
            raise PersistenceError(f"Cannot read vault: {exc}", self.path) from exc
        except ValueError as exc:
            raise PersistenceError(f"Vault is not valid JSON: {exc}", self.path) from exc

        try:
            data = self._parse(payload)
        except (KeyError, TypeError, ValueError, binascii.Error) as exc:
            raise PersistenceError(f"Malformed vault: {exc}", self.path) from exc

        logger.info("Loaded %d records from %s", len(data.records), self.path)
        return data

    def _parse(self, payload) -> VaultData:
        if not isinstance(payload, dict):
            raise TypeError("vault must be a JSON object")
        version = payload.get("version")
        if version != VAULT_FORMAT_VERSION:
            raise ValueError(f"unsupported vault version {version!r}")

        kdf_info = payload["kdf"]
        if not isinstance(kdf_info, dict):
            raise TypeError("kdf header must be a JSON object")
        if kdf_info.get("algorithm") != KDF_ALGORITHM:
            raise ValueError(f"unsupported key derivation {kdf_info.get('algorithm')!r}")
        kdf = KeyDerivation(_b64decode(kdf_info["salt"]), int(kdf_info["iterations"]))
        keycheck = _b64decode(payload["keycheck"])

        records = [self._parse_record(item) for item in payload.get("records") or []]
        return VaultData(kdf, keycheck, records)

    @staticmethod
    def _parse_record(item: dict) -> Record:
        if not isinstance(item, dict):
            raise TypeError("record must be a JSON object")
        domain = item["domain"]
        if not isinstance(domain, str) or not domain.strip():
            raise ValueError("record without a domain")

        subdomains = item.get("subdomains") or []
        if not isinstance(subdomains, list) or not all(isinstance(s, str) for s in subdomains):
            raise TypeError(f"subdomains of {domain} must be a list of strings")

        date = item.get("date")
        if date is not None:
            date = datetime.datetime.strptime(date, STORED_DATE_FORMAT).date()

        secrets = {}
        for which in SECRET_FIELDS:
            encoded = item.get(which.value)
            blob = _b64decode(encoded) if encoded is not None else None
            # Absence is stored as null; an empty blob is treated the same.
            secrets[which.value] = blob or None

        return Record(domain=domain, date=date, subdomains=subdomains, **secrets)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def save(self, data: VaultData) -> None:
        """
        Write *data* to the vault file atomically.

        The JSON is written to a '.tmp' companion first and then moved over
        the original with os.replace(), so a failed write leaves the previous
        vault intact.

        Raises PersistenceError on any I/O failure.
        """
        payload = {
            "version": VAULT_FORMAT_VERSION,
            "kdf": {
                "algorithm": KDF_ALGORITHM,
                "salt": _b64encode(data.kdf.salt),
                "iterations": data.kdf.iterations,
            },
            "keycheck": _b64encode(data.keycheck),
            "records": [self._dump_record(r) for r in sorted(data.records, key=Record.sort_key)],
        }

        tmp = self.path + ".tmp"
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            self._silent_remove(tmp)
            raise PersistenceError(f"Cannot write vault: {exc}", self.path) from exc

        logger.info("Saved %d records to %s", len(data.records), self.path)

    @staticmethod
    def _dump_record(record: Record) -> dict:
        item = {
            "domain": record.domain,
            "subdomains": list(record.subdomains),
            "date": record.date.strftime(STORED_DATE_FORMAT) if record.date else None,
        }
        for which in SECRET_FIELDS:
            blob = record.secret(which)
            item[which.value] = _b64encode(blob) if blob else None
        return item

    def backup(self) -> str:
        """
        Copy the vault file to '<name>.bak.<timestamp>' next to it and
        return the backup path.

        Raises PersistenceError if the copy fails.
        """
        stamp = time.strftime("%Y%m%d_%H%M%S")
        dest = f"{self.path}.bak.{stamp}"
        try:
            shutil.copy2(self.path, dest)
        except OSError as exc:
            raise PersistenceError(f"Cannot back up vault: {exc}", self.path) from exc
        logger.warning("Vault backed up to %s", dest)
        return dest

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @staticmethod
    def _silent_remove(path: str) -> None:
        """Remove *path* if it exists; a failure is only logged."""
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError:
            logger.exception("Failed to remove %s", path)


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text: str) -> bytes:
    if not isinstance(text, str):
        raise TypeError("expected a base64 string")
    return base64.b64decode(text.encode("ascii"), validate=True)
