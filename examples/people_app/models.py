"""
Entities for the Kestrel people example.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

from kestrel.core import Collection, DateTimeField, Entity, IntegerField, Reference, StringField
from kestrel.metadata import Cascade
from kestrel.validation import MinValueValidator

ADDRESS_TYPES = ("private", "business")


class Person(Entity):
    first_name = StringField(mandatory=True, max_length=100)
    name = StringField(mandatory=True, max_length=100)
    age = IntegerField(default=0, validators=[MinValueValidator(0)])
    addresses = Collection(
        "Address", reference_field="person", cascade=Cascade.SAVE_DELETE, eager=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.name}"

    @property
    def is_legal_age(self) -> bool:
        return (self.age or 0) >= 18

    @property
    def valid_addresses(self) -> List["Address"]:
        now = datetime.now()
        return [
            address
            for address in self.addresses
            if not address.deleted and (address.valid_from is None or address.valid_from <= now)
        ]


class Address(Entity):
    person = Reference(Person, mandatory=True, reference_field="addresses")
    street = StringField(mandatory=True, max_length=200)
    zip = StringField(mandatory=True, max_length=10)
    town = StringField(mandatory=True, max_length=100)
    valid_from = DateTimeField()
    address_type = StringField(default="private", max_length=20)

    def clean(self) -> None:
        if self.address_type not in ADDRESS_TYPES:
            raise ValueError(f"address_type must be one of {', '.join(ADDRESS_TYPES)}")
