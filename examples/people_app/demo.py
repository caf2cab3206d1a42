"""
End-to-end walk through the Kestrel people example.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from kestrel.connection import ConnectionConfig
from kestrel.persistence import Session, SessionFactory
from kestrel.utils import get_logger
from kestrel.validation import ValidationError

from .models import Address, Person

logger = get_logger("examples.people")


def keep_last_address(address: Address, session: Session) -> None:
    """
    ``before_delete`` listener: a person must keep at least one address
    unless the person is deleted as well.
    """
    owner = address.person
    if owner.deleted:
        return
    remaining = [a for a in owner.addresses if a is not address and not a.deleted]
    if not remaining:
        raise ValidationError(
            {"person": [f"{owner.full_name} needs at least one address."]},
            entity="Address",
        )


class CommitCounter:
    """Commit listener counting successful commits."""

    def __init__(self) -> None:
        self.commits = 0

    def commit(self, session: Session) -> None:
        self.commits += 1


def build_factory(dsn: str) -> SessionFactory:
    factory = SessionFactory.for_sqlite(ConnectionConfig.from_dsn(dsn), [Person, Address])
    factory.listeners.register("before_delete", keep_last_address, entity_type=Address)
    return factory


def recreate_schema(session: Session) -> None:
    session.get_table(Person).recreate()
    session.get_table(Address).recreate()


def run_demo(dsn: str) -> Dict[str, Any]:
    """
    Create a person with one address, reload it in a fresh session and try
    to delete the only address.
    """
    factory = build_factory(dsn)
    counter = CommitCounter()
    factory.add_commit_listener(counter)

    with factory.open_session() as session:
        recreate_schema(session)
        person = Person(first_name="Max", name="Mustermann", age=21)
        person.addresses.append(
            Address(
                valid_from=datetime(2020, 1, 1),
                zip="0815",
                town="SampleTown",
                street="Samplestreet 75a",
                address_type="business",
            )
        )
        with session.begin_transaction() as tx:
            session.save_or_update(person)
            tx.commit()
        person_id = person.id

    with factory.open_session() as session:
        loaded = session.get(Person, person_id)
        summary: Dict[str, Any] = {
            "person": loaded.full_name,
            "legal_age": loaded.is_legal_age,
            "addresses": [f"{a.street}, type={a.address_type}" for a in loaded.valid_addresses],
            "delete_blocked": None,
        }
        with session.begin_transaction() as tx:
            try:
                session.delete(loaded.addresses[0])
                tx.commit()
            except ValidationError as exc:
                logger.info("The address could not be deleted: %s", exc)
                summary["delete_blocked"] = str(exc)

    summary["commits"] = counter.commits
    return summary
