"""
records.py – Credential records and the sorted in-memory vault.

Record holds one credential: a domain, optional subdomains, a date and up to
three secret fields (login, password, remark).  Secret fields are stored
only as FieldCipher blobs; plaintext is produced on demand by reveal() and
never kept on the record.

VaultStore owns the records and keeps them sorted:

  1. dated records before undated ones,
  2. by date ascending,
  3. by domain ascending.

Records are addressed by their 1-based position in that order.  Every
position-taking operation re-sorts before resolving the position and raises
RecordNotFoundError for a position outside the current bounds.  Operations
validate before mutating, so a raised error leaves the store unchanged.
"""

import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Union

from crypto import FieldCipher

logger = logging.getLogger("Keychain")


class RecordNotFoundError(LookupError):
    """Raised when a position does not resolve to a record."""

    def __init__(self, position, size: int) -> None:
        super().__init__(f"No record at position {position} (vault holds {size})")
        self.position = position
        self.size = size


class EntryValidationError(ValueError):
    """
    Raised when a required value is missing or malformed.

    Attributes
    ----------
    field : Field or None
        The field that caused the error.  Used by the console UI to
        re-prompt for the right value.
    """

    def __init__(self, message: str, field: Optional["Field"] = None) -> None:
        super().__init__(message)
        self.field = field


class Field(Enum):
    """Every editable part of a record, in the order the edit menu shows them."""

    DOMAIN = "domain"
    SUBDOMAINS = "subdomains"
    DATE = "date"
    LOGIN = "login"
    PASSWORD = "password"
    REMARK = "remark"

    @property
    def is_secret(self) -> bool:
        return self in SECRET_FIELDS


SECRET_FIELDS = (Field.LOGIN, Field.PASSWORD, Field.REMARK)


# ---------------------------------------------------------------------------
# Edits – one variant per kind of payload
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEdit:
    domain: str
    field = Field.DOMAIN


@dataclass(frozen=True)
class SubdomainsEdit:
    subdomains: Sequence[str]
    field = Field.SUBDOMAINS


@dataclass(frozen=True)
class DateEdit:
    date: datetime.date
    field = Field.DATE


@dataclass(frozen=True)
class SecretEdit:
    """Replace a secret field; ``plaintext`` of None or "" clears it."""

    field: Field
    plaintext: Optional[str]

    def __post_init__(self) -> None:
        if not self.field.is_secret:
            raise ValueError(f"{self.field.value} is not a secret field")


FieldEdit = Union[DomainEdit, SubdomainsEdit, DateEdit, SecretEdit]


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass
class Record:
    """One credential entry.  Secret fields hold ciphertext blobs or None."""

    domain: str
    date: Optional[datetime.date]
    subdomains: List[str] = field(default_factory=list)
    login: Optional[bytes] = None
    password: Optional[bytes] = None
    remark: Optional[bytes] = None

    @classmethod
    def create(
        cls,
        cipher: FieldCipher,
        domain: str,
        date: datetime.date,
        subdomains: Sequence[str] = (),
        login: Optional[str] = None,
        password: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> "Record":
        """
        Build a new record from user input, encrypting the secret fields.

        Empty or missing secret values leave the field absent.

        Raises EntryValidationError for an empty domain or a missing date.
        """
        _check_domain(domain)
        _check_date(date)
        return cls(
            domain=domain,
            date=date,
            subdomains=_check_subdomains(subdomains),
            login=_seal(cipher, login),
            password=_seal(cipher, password),
            remark=_seal(cipher, remark),
        )

    def sort_key(self):
        return (self.date is None, self.date or datetime.date.min, self.domain)

    @property
    def visible_subdomains(self) -> List[str]:
        """Subdomains to display; a lone empty string means none."""
        if not self.subdomains or (len(self.subdomains) == 1 and not self.subdomains[0]):
            return []
        return list(self.subdomains)

    def secret(self, which: Field) -> Optional[bytes]:
        if not which.is_secret:
            raise ValueError(f"{which.value} is not a secret field")
        return getattr(self, which.value)

    def has_secret(self, which: Field) -> bool:
        return self.secret(which) is not None


def _check_domain(domain: str) -> None:
    if not domain or not domain.strip():
        raise EntryValidationError("Domain is required.", field=Field.DOMAIN)


def _check_date(date) -> None:
    if not isinstance(date, datetime.date):
        raise EntryValidationError("Date is required.", field=Field.DATE)


def _check_subdomains(subdomains: Sequence[str]) -> List[str]:
    """Return *subdomains* as a list; a bare string is a caller error."""
    if isinstance(subdomains, str):
        raise TypeError("subdomains must be a sequence of strings, not a str")
    return list(subdomains)


def _seal(cipher: FieldCipher, plaintext: Optional[str]) -> Optional[bytes]:
    """Encrypt *plaintext*, or return None when there is nothing to store."""
    if not plaintext:
        return None
    return cipher.encrypt_text(plaintext)


def reveal(record: Record, which: Field, cipher: FieldCipher) -> Optional[str]:
    """
    Return the plaintext of one secret field of *record*.

    Returns None when the field is absent.  Raises CryptoError when the
    blob cannot be decrypted.  The plaintext is not stored anywhere.
    """
    blob = record.secret(which)
    if blob is None:
        return None
    return cipher.decrypt_text(blob)


# ---------------------------------------------------------------------------
# VaultStore
# ---------------------------------------------------------------------------

class VaultStore:
    """
    The ordered collection of records for one session.

    Parameters
    ----------
    records : iterable of Record, optional
        Records loaded from the vault file.  Their blobs are kept as-is.
    """

    def __init__(self, records=None) -> None:
        self._records: List[Record] = list(records or [])
        self._sort()

    def _sort(self) -> None:
        self._records.sort(key=Record.sort_key)

    def _resolve(self, position: int) -> int:
        """Re-sort and turn a 1-based *position* into a list index."""
        self._sort()
        if (
            isinstance(position, bool)
            or not isinstance(position, int)
            or not 1 <= position <= len(self._records)
        ):
            raise RecordNotFoundError(position, len(self._records))
        return position - 1

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records())

    def records(self) -> List[Record]:
        """Return the records in sorted order (a new list)."""
        self._sort()
        return list(self._records)

    def position_of(self, record: Record) -> int:
        """Return the current 1-based position of *record* (by identity)."""
        self._sort()
        for index, candidate in enumerate(self._records):
            if candidate is record:
                return index + 1
        raise ValueError("record is not in this vault")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add(self, record: Record) -> int:
        """
        Insert *record* and return its position in the new order.

        Duplicate domains are allowed.
        """
        _check_domain(record.domain)
        self._records.append(record)
        position = self.position_of(record)
        logger.info("Added record for %s at position %d", record.domain, position)
        return position

    def get(self, position: int) -> Record:
        """Return the record at 1-based *position*."""
        return self._records[self._resolve(position)]

    def update_field(self, position: int, edit: FieldEdit, cipher: FieldCipher) -> Record:
        """
        Apply *edit* to the record at *position* and return that record.

        Secret fields are re-encrypted through *cipher*, or cleared when the
        new plaintext is empty.  Domain and date edits re-sort the store.
        """
        record = self._records[self._resolve(position)]

        if isinstance(edit, DomainEdit):
            _check_domain(edit.domain)
            record.domain = edit.domain
        elif isinstance(edit, SubdomainsEdit):
            record.subdomains = _check_subdomains(edit.subdomains)
        elif isinstance(edit, DateEdit):
            _check_date(edit.date)
            record.date = edit.date
        elif isinstance(edit, SecretEdit):
            setattr(record, edit.field.value, _seal(cipher, edit.plaintext))
        else:
            raise TypeError(f"unsupported edit: {edit!r}")

        self._sort()
        logger.info("Updated %s of record at position %d", edit.field.value, position)
        return record

    def delete(self, position: int) -> Record:
        """Remove and return the record at *position*."""
        record = self._records.pop(self._resolve(position))
        logger.info("Deleted record for %s at position %d", record.domain, position)
        return record
