import pytest

from examples.people_app import Address, Person, build_factory, recreate_schema, run_demo
from kestrel.validation import ValidationError


def test_run_demo_blocks_deleting_last_address(tmp_path):
    summary = run_demo(f"sqlite:///{tmp_path / 'people.db'}")
    assert summary["person"] == "Max Mustermann"
    assert summary["legal_age"] is True
    assert summary["addresses"] == ["Samplestreet 75a, type=business"]
    assert "needs at least one address" in summary["delete_blocked"]
    assert summary["commits"] == 1


def test_person_with_two_addresses_can_drop_one(tmp_path):
    factory = build_factory(f"sqlite:///{tmp_path / 'two.db'}")
    with factory.open_session() as session:
        recreate_schema(session)
        person = Person(first_name="Erika", name="Musterfrau", age=16)
        person.addresses.append(Address(street="A 1", zip="1", town="X"))
        person.addresses.append(Address(street="B 2", zip="2", town="Y"))
        session.save_or_update(person)
        session.commit()
        person_id = person.id

    with factory.open_session() as session:
        person = session.get(Person, person_id)
        assert not person.is_legal_age
        session.delete(person.addresses[0])
        session.commit()
        assert [a.street for a in person.valid_addresses] == ["B 2"]


def test_address_type_is_validated(tmp_path):
    factory = build_factory(f"sqlite:///{tmp_path / 'types.db'}")
    with factory.open_session() as session:
        recreate_schema(session)
        person = Person(first_name="Max", name="Mustermann")
        person.addresses.append(Address(street="A 1", zip="1", town="X", address_type="holiday"))
        session.save_or_update(person)
        with pytest.raises(ValidationError) as excinfo:
            session.commit()
        assert "__all__" in excinfo.value.errors


def test_deleting_person_removes_addresses(tmp_path):
    factory = build_factory(f"sqlite:///{tmp_path / 'cascade.db'}")
    with factory.open_session() as session:
        recreate_schema(session)
        person = Person(first_name="Max", name="Mustermann")
        person.addresses.append(Address(street="A 1", zip="1", town="X"))
        session.save_or_update(person)
        session.commit()

        session.delete(person)
        session.commit()
        assert person.deleted
        assert all(a.deleted for a in person.addresses)

    with factory.open_session() as session:
        assert session.query(Person).all() == []
        assert session.query(Address).all() == []
        address = session.query(Address).include_deleted().first()
        assert address.person.deleted


def test_blocked_delete_leaves_address_in_place(tmp_path):
    factory = build_factory(f"sqlite:///{tmp_path / 'veto.db'}")
    with factory.open_session() as session:
        recreate_schema(session)
        person = Person(first_name="Max", name="Mustermann")
        person.addresses.append(Address(street="A 1", zip="1", town="X"))
        session.save_or_update(person)
        session.commit()
        person_id = person.id

    with factory.open_session() as session:
        person = session.get(Person, person_id)
        address = person.addresses[0]
        with session.begin_transaction() as tx:
            session.delete(address)
            with pytest.raises(ValidationError):
                tx.commit()
        assert not address.deleted

        session.commit()
        assert [a.street for a in session.query(Address).all()] == ["A 1"]
