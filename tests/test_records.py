"""Tests for Record and the sorted, position-addressed VaultStore."""
import datetime

import pytest

from records import (
    DateEdit, DomainEdit, EntryValidationError, Field, Record,
    RecordNotFoundError, SecretEdit, SubdomainsEdit, VaultStore, reveal,
)


def _domains(store):
    return [r.domain for r in store.records()]


class TestRecord:

    def test_create_encrypts_secrets(self, cipher, day):
        record = Record.create(cipher, "example.com", day(1, 1), password="s3cr3t")
        assert record.password != b"s3cr3t"
        assert reveal(record, Field.PASSWORD, cipher) == "s3cr3t"

    def test_empty_secrets_stay_absent(self, cipher, day):
        record = Record.create(cipher, "example.com", day(1, 1), login="", remark=None)
        assert record.login is None
        assert record.password is None
        assert record.remark is None
        assert reveal(record, Field.LOGIN, cipher) is None

    @pytest.mark.parametrize("domain", ["", "   "])
    def test_domain_required(self, cipher, day, domain):
        with pytest.raises(EntryValidationError) as info:
            Record.create(cipher, domain, day(1, 1))
        assert info.value.field is Field.DOMAIN

    def test_date_required(self, cipher):
        with pytest.raises(EntryValidationError) as info:
            Record.create(cipher, "example.com", None)
        assert info.value.field is Field.DATE

    @pytest.mark.parametrize("subdomains, expected", [
        ([], []),
        ([""], []),
        (["www"], ["www"]),
        (["www", "mail"], ["www", "mail"]),
    ])
    def test_visible_subdomains(self, subdomains, expected):
        record = Record("example.com", datetime.date(2024, 1, 1), subdomains=subdomains)
        assert record.visible_subdomains == expected

    def test_secret_rejects_metadata_field(self):
        record = Record("example.com", datetime.date(2024, 1, 1))
        with pytest.raises(ValueError):
            record.secret(Field.DOMAIN)

    def test_create_rejects_bare_string_subdomains(self, cipher, day):
        with pytest.raises(TypeError):
            Record.create(cipher, "example.com", day(1, 1), subdomains="www")

    def test_secret_edit_rejects_metadata_field(self):
        with pytest.raises(ValueError):
            SecretEdit(Field.DATE, "x")


class TestOrdering:

    def test_same_date_sorted_by_domain(self, day):
        store = VaultStore()
        store.add(Record("b.com", day(2, 1)))
        store.add(Record("a.com", day(2, 1)))
        assert _domains(store) == ["a.com", "b.com"]

    def test_sorted_by_date_first(self, day):
        store = VaultStore()
        store.add(Record("a.com", day(3, 1)))
        store.add(Record("z.com", day(1, 1)))
        store.add(Record("m.com", day(2, 1)))
        assert _domains(store) == ["z.com", "m.com", "a.com"]

    def test_undated_records_last(self, day):
        store = VaultStore([
            Record("b.com", None),
            Record("c.com", day(1, 1, 2030)),
            Record("a.com", None),
            Record("d.com", day(1, 1, 2000)),
        ])
        assert _domains(store) == ["d.com", "c.com", "a.com", "b.com"]

    def test_invariant_holds_for_many_adds(self, day):
        store = VaultStore()
        dates = [day(5, 3), None, day(1, 1), day(5, 3), None, day(31, 12, 2023)]
        for index, date in enumerate(dates):
            store.add(Record(f"{'edcbaf'[index]}.com", date))
        records = store.records()
        dated = [r for r in records if r.date is not None]
        assert records[:len(dated)] == dated
        keys = [(r.date, r.domain) for r in dated]
        assert keys == sorted(keys)
        undated = [r.domain for r in records[len(dated):]]
        assert undated == sorted(undated)

    def test_add_returns_position(self, day):
        store = VaultStore([Record("a.com", day(1, 1)), Record("c.com", day(3, 1))])
        assert store.add(Record("b.com", day(2, 1))) == 2

    def test_duplicate_domains_allowed(self, day):
        store = VaultStore()
        store.add(Record("a.com", day(1, 1)))
        store.add(Record("a.com", day(2, 1)))
        assert len(store) == 2


class TestPositions:

    @pytest.fixture
    def store(self, day):
        return VaultStore([
            Record("a.com", day(1, 1)),
            Record("b.com", day(2, 1)),
            Record("c.com", day(3, 1)),
        ])

    def test_get_is_one_based(self, store):
        assert store.get(1).domain == "a.com"
        assert store.get(3).domain == "c.com"

    @pytest.mark.parametrize("position", [0, -1, 4, 100, "1", None, True])
    def test_out_of_range(self, store, position):
        with pytest.raises(RecordNotFoundError):
            store.get(position)

    def test_get_on_empty_store(self):
        with pytest.raises(RecordNotFoundError) as info:
            VaultStore().get(1)
        assert info.value.position == 1
        assert info.value.size == 0

    def test_delete_shifts_later_positions(self, store):
        before = {i: store.get(i) for i in (1, 2, 3)}
        removed = store.delete(2)
        assert removed is before[2]
        assert store.get(1) is before[1]
        assert store.get(2) is before[3]
        with pytest.raises(RecordNotFoundError):
            store.get(3)

    def test_delete_out_of_range_leaves_store(self, store):
        with pytest.raises(RecordNotFoundError):
            store.delete(4)
        assert _domains(store) == ["a.com", "b.com", "c.com"]

    def test_get_resorts_after_external_change(self, store, day):
        store.get(1).date = day(9, 9)
        assert store.get(1).domain == "b.com"


class TestUpdateField:

    @pytest.fixture
    def store(self, cipher, day):
        return VaultStore([
            Record.create(cipher, "a.com", day(1, 1), password="old"),
            Record.create(cipher, "b.com", day(2, 1)),
        ])

    def test_secret_replaced(self, store, cipher):
        old_blob = store.get(1).password
        record = store.update_field(1, SecretEdit(Field.PASSWORD, "new"), cipher)
        assert record.password != old_blob
        assert reveal(record, Field.PASSWORD, cipher) == "new"

    def test_secret_cleared(self, store, cipher):
        store.update_field(1, SecretEdit(Field.PASSWORD, ""), cipher)
        assert store.get(1).password is None

    def test_secret_added(self, store, cipher):
        store.update_field(2, SecretEdit(Field.REMARK, "note"), cipher)
        assert reveal(store.get(2), Field.REMARK, cipher) == "note"

    def test_domain_resorts(self, store, cipher):
        store.update_field(1, DomainEdit("c.com"), cipher)
        assert _domains(store) == ["c.com", "b.com"]
        store.update_field(1, DateEdit(datetime.date(2025, 1, 1)), cipher)
        assert _domains(store) == ["b.com", "c.com"]

    def test_subdomains_replaced(self, store, cipher):
        store.update_field(2, SubdomainsEdit(["www", "mail"]), cipher)
        assert store.get(2).subdomains == ["www", "mail"]

    def test_empty_domain_rejected_without_change(self, store, cipher):
        with pytest.raises(EntryValidationError):
            store.update_field(1, DomainEdit(""), cipher)
        assert _domains(store) == ["a.com", "b.com"]

    def test_bad_position(self, store, cipher):
        with pytest.raises(RecordNotFoundError):
            store.update_field(3, SecretEdit(Field.LOGIN, "x"), cipher)

    def test_bare_string_subdomains_rejected_without_change(self, store, cipher):
        with pytest.raises(TypeError):
            store.update_field(2, SubdomainsEdit("www"), cipher)
        assert store.get(2).subdomains == []

    def test_unknown_edit(self, store, cipher):
        with pytest.raises(TypeError):
            store.update_field(1, object(), cipher)
