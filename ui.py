"""
ui.py – Terminal menu.

This module contains ConsoleUI, the interactive front end of the keychain.
It owns all prompting, parsing and formatting and talks to the core only
through a Session:

    1. List of records
    2. Details of record
    3. Add new record
    4. Edit record
    5. Delete record
    0. Exit

Positions typed by the user are passed straight to the session, which
resolves them against the current sort order on every call.  Expected
errors (wrong position, undecryptable field, failed save) are reported and
the menu comes back; nothing here terminates the process.
"""

import datetime
import logging
import os
import re
import sys
from typing import Callable, List, Optional

from config import DATE_FORMAT
from crypto import CryptoError
from records import (
    DateEdit, DomainEdit, EntryValidationError, Field, Record,
    RecordNotFoundError, SecretEdit, SubdomainsEdit,
)
from session import Session
from storage import PersistenceError

logger = logging.getLogger("Keychain")

# Shown instead of a secret that exists but cannot be decrypted.
UNDECRYPTABLE = "<cannot decrypt>"

# Shown in the edit view for an absent value.
ABSENT = "<null>"

_DATE_RE = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$")

# Edit menu numbers, in display order.
EDIT_MENU = {
    1: Field.DOMAIN,
    2: Field.SUBDOMAINS,
    3: Field.DATE,
    4: Field.LOGIN,
    5: Field.PASSWORD,
    6: Field.REMARK,
}

_LABELS = {
    Field.DOMAIN:     "Domain",
    Field.SUBDOMAINS: "Subdomains",
    Field.DATE:       "Date",
    Field.LOGIN:      "Login",
    Field.PASSWORD:   "Password",
    Field.REMARK:     "Remark",
}


def parse_date(text: str) -> datetime.date:
    """
    Parse a ``day.month.year`` date strictly.

    Raises EntryValidationError for anything that is not a real calendar
    date in that form (e.g. '31.02.2024' or '2024-01-01').
    """
    text = text.strip()
    if not _DATE_RE.match(text):
        raise EntryValidationError("Date format: dd.mm.yyyy", field=Field.DATE)
    try:
        return datetime.datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as exc:
        raise EntryValidationError("Date format: dd.mm.yyyy", field=Field.DATE) from exc


def format_date(date: Optional[datetime.date]) -> str:
    if date is None:
        return ABSENT
    return f"{date.day:02d}.{date.month:02d}.{date.year:04d}"


def split_subdomains(text: str) -> List[str]:
    """Split space-separated subdomains; blank input gives an empty list."""
    return text.split()


class ConsoleUI:
    """
    The interactive menu loop.

    Parameters
    ----------
    session : Session
        The unlocked vault.
    clear_screen : bool
        Clear the terminal between screens.
    input_func : callable
        Reads one line of user input (builtin input by default).
    output : callable
        Prints one line (print by default).
    """

    def __init__(
        self,
        session: Session,
        clear_screen: bool = True,
        input_func: Optional[Callable[[str], str]] = None,
        output: Optional[Callable[..., None]] = None,
    ) -> None:
        self.session = session
        self.clear_screen_enabled = clear_screen
        self.input = input_func or input
        self.output = output or print

        self._actions = {
            1: self.show_all_records,
            2: self.show_record_details,
            3: self.new_record,
            4: self.edit_record,
            5: self.delete_record,
        }

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Show the menu until the user chooses Exit (or input ends), then save.

        Raises PersistenceError if the final save fails.
        """
        while True:
            self._clear_screen()
            self._print_menu()
            try:
                choice = self._read_number("Action: ")
            except EOFError:
                break
            if choice == 0:
                break

            action = self._actions.get(choice)
            if action is None:
                self.output("Unknown action.")
                continue
            try:
                action()
            except EOFError:
                break

        self.session.save()
        logger.info("Session ended")

    def _print_menu(self) -> None:
        self.output("1. List of records")
        self.output("2. Details of record")
        self.output("3. Add new record")
        self.output("4. Edit record")
        self.output("5. Delete record")
        self.output("0. Exit")
        self.output()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def show_all_records(self) -> None:
        self._clear_screen()
        for position, record in enumerate(self.session.records(), start=1):
            self.output(f"{position}")
            self._print_summary(record)
            self.output()
        self._pause()

    def show_record_details(self) -> None:
        position = self._read_number("\nEnter record number: ")
        self._clear_screen()
        try:
            record = self.session.get(position)
        except RecordNotFoundError:
            self.output("Wrong record number!")
        else:
            self._print_summary(record)
            for which in (Field.LOGIN, Field.PASSWORD, Field.REMARK):
                if record.has_secret(which):
                    self.output(f"{_LABELS[which] + ':':<12}{self._render_secret(record, which)}")
        self.output()
        self._pause()

    def new_record(self) -> None:
        self._clear_screen()
        domain = self._read_required("Enter domain (required): ")
        subdomains = split_subdomains(self.input("Enter subdomains (through a space): "))
        date = self._read_date()
        login = self.input("Enter login: ")
        password = self.input("Enter password: ")
        remark = self.input("Enter remark: ")

        try:
            position = self.session.add_record(
                domain, date, subdomains=subdomains,
                login=login, password=password, remark=remark,
            )
        except PersistenceError as exc:
            self._report_save_failure(exc)
        else:
            self.output(f"Record added at position {position}.")
        self.output()
        self._pause()

    def edit_record(self) -> None:
        position = self._read_number("\nEnter record number: ")
        self._clear_screen()
        try:
            record = self.session.get(position)
            self._print_for_edit(record)
            which = EDIT_MENU.get(self._read_number("\nEnter number of value to edit: "))
            if which is not None:
                self.session.edit_record(position, self._read_edit(which))
        except RecordNotFoundError:
            self.output("Wrong record number!")
        except PersistenceError as exc:
            self._report_save_failure(exc)
        self.output()
        self._pause()

    def delete_record(self) -> None:
        position = self._read_number("\nEnter record number: ")
        self._clear_screen()
        try:
            self.session.delete_record(position)
            self.output("Record removed.")
        except RecordNotFoundError:
            self.output("Wrong record number!")
        except PersistenceError as exc:
            self._report_save_failure(exc)
        self.output()
        self._pause()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _print_summary(self, record: Record) -> None:
        self.output(f"Domain:     {record.domain}")
        subdomains = record.visible_subdomains
        if subdomains:
            self.output(f"Subdomains: {subdomains[0]}")
            for subdomain in subdomains[1:]:
                self.output(f"            {subdomain}")
        self.output(f"Date:       {format_date(record.date)}")

    def _print_for_edit(self, record: Record) -> None:
        self.output(f"1. Domain:     {record.domain}")
        subdomains = record.visible_subdomains or [ABSENT]
        self.output(f"2. Subdomains: {subdomains[0]}")
        for subdomain in subdomains[1:]:
            self.output(f"               {subdomain}")
        self.output(f"3. Date:       {format_date(record.date)}")
        for number, which in ((4, Field.LOGIN), (5, Field.PASSWORD), (6, Field.REMARK)):
            label = f"{number}. {_LABELS[which]}:"
            self.output(f"{label:<15}{self._render_secret(record, which)}")
        self.output("0. Exit")

    def _render_secret(self, record: Record, which: Field) -> str:
        """Plaintext of a secret field, ABSENT, or UNDECRYPTABLE."""
        try:
            value = self.session.reveal(record, which)
        except CryptoError:
            logger.warning("Could not decrypt %s of %s", which.value, record.domain)
            return UNDECRYPTABLE
        return ABSENT if value is None else value

    # ------------------------------------------------------------------
    # Input helpers
    # ------------------------------------------------------------------

    def _read_edit(self, which: Field):
        """Prompt for the new value of *which* and return the matching edit."""
        if which is Field.DOMAIN:
            return DomainEdit(self._read_required("Enter domain (required): "))
        if which is Field.SUBDOMAINS:
            return SubdomainsEdit(split_subdomains(self.input("Enter subdomains (through a space): ")))
        if which is Field.DATE:
            return DateEdit(self._read_date())
        return SecretEdit(which, self.input(f"Enter {which.value}: "))

    def _read_number(self, prompt: str) -> int:
        """Prompt until the user enters an integer."""
        while True:
            text = self.input(prompt).strip()
            try:
                return int(text)
            except ValueError:
                self.output("Please enter a number.")

    def _read_required(self, prompt: str) -> str:
        value = ""
        while not value.strip():
            value = self.input(prompt)
        return value.strip()

    def _read_date(self) -> datetime.date:
        while True:
            try:
                return parse_date(self.input("Enter date (required): "))
            except EntryValidationError as exc:
                self.output(str(exc))

    def _pause(self) -> None:
        self.input("Press Enter to continue...")

    def _report_save_failure(self, exc: PersistenceError) -> None:
        logger.error("Autosave failed: %s", exc)
        self.output(f"Change kept in memory but the vault could not be saved: {exc}")

    def _clear_screen(self) -> None:
        if not self.clear_screen_enabled:
            return
        if sys.platform.startswith("win"):
            os.system("cls")
        else:
            sys.stdout.write("\033[H\033[2J")
            sys.stdout.flush()
