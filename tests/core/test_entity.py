from datetime import datetime
from decimal import Decimal

import pytest

from kestrel.core import (
    BooleanField,
    Collection,
    DateTimeField,
    DecimalField,
    Entity,
    IntegerField,
    LazyReference,
    Reference,
    StringField,
)
from kestrel.exceptions import ConfigurationError, SessionClosedError
from kestrel.metadata import Cascade, FieldType
from kestrel.validation import MinValueValidator, ValidationError


class Customer(Entity):
    name = StringField(mandatory=True, max_length=20)
    balance = DecimalField(precision=10, scale=2, default=Decimal("0"))
    active = BooleanField()
    joined = DateTimeField()
    age = IntegerField(validators=[MinValueValidator(0)])
    orders = Collection("Order", reference_field="customer")

    class Meta:
        table = "customers"


class Order(Entity):
    customer = Reference(Customer, mandatory=True, reference_field="orders")
    total = DecimalField(precision=8, scale=2)


class Product(Entity):
    title = StringField()


def test_entity_collects_fields_in_declaration_order():
    assert list(Customer._fields) == [
        "id",
        "deleted",
        "version",
        "name",
        "balance",
        "active",
        "joined",
        "age",
    ]
    assert list(Customer._list_fields) == ["orders"]


def test_meta_table_and_default_table_name():
    assert Customer.describe().table == "customers"
    assert Order.describe().table == "order"


def test_describe_builds_field_metadata():
    metadata = Order.describe()
    customer = metadata.get_field("customer")
    assert customer.field_type == "Customer"
    assert customer.is_complex_field_type
    assert customer.mandatory
    assert customer.cascade is Cascade.NONE
    assert customer.reference_field == "orders"

    balance = Customer.describe().get_field("balance")
    assert balance.field_type == FieldType.DECIMAL
    assert (balance.decimal_precision, balance.decimal_scale) == (10, 2)
    assert Customer.describe().get_field("name").max_length == 20


def test_new_entity_has_defaults_and_is_clean():
    customer = Customer(name="Ada")
    assert customer.id == 0
    assert customer.version == 0
    assert customer.deleted is False
    assert customer.is_not_saved
    assert customer.balance == Decimal("0.00")
    assert customer.active is False
    assert not customer.is_dirty()
    assert customer.evicted is False


def test_setter_reports_change_and_revert_clears_it():
    customer = Customer(name="Ada")
    customer.name = "Grace"
    assert customer.change_tracker.dirty_fields() == {"name"}
    customer.name = "Ada"
    assert not customer.is_dirty()


def test_system_fields_are_read_only():
    customer = Customer(name="Ada")
    with pytest.raises(AttributeError):
        customer.id = 5
    with pytest.raises(AttributeError):
        customer.version = 2
    with pytest.raises(TypeError):
        Customer(name="Ada", deleted=True)


def test_unknown_keyword_is_rejected():
    with pytest.raises(TypeError):
        Customer(nickname="x")


def test_redeclaring_system_field_fails():
    with pytest.raises(ConfigurationError):

        class Broken(Entity):
            version = IntegerField()


def test_field_conversion():
    customer = Customer(name="Ada", balance="10.5", joined="2024-03-01T10:00:00", active="true")
    assert customer.balance == Decimal("10.50")
    assert customer.joined == datetime(2024, 3, 1, 10, 0)
    assert customer.active is True
    with pytest.raises(ValueError):
        customer.name = "x" * 21
    with pytest.raises(ValueError):
        customer.age = "old"


def test_reference_checks_target_type():
    order = Order()
    with pytest.raises(ValueError):
        order.customer = Product(title="Widget")


def test_reference_keeps_loaded_inverse_collection_in_sync():
    first = Customer(name="Ada")
    second = Customer(name="Grace")
    assert first.orders == [] and second.orders == []

    order = Order(customer=first)
    assert first.orders == [order]

    order.customer = second
    assert order not in first.orders
    assert second.orders == [order]


def test_lazy_reference_without_session_raises():
    order = Order()
    order._field_values["customer"] = LazyReference("Customer", 3)
    with pytest.raises(SessionClosedError):
        _ = order.customer


def test_lazy_reference_equals_matching_entity():
    customer = Customer(name="Ada")
    customer._field_values["id"] = 3
    assert LazyReference("Customer", 3) == customer
    assert LazyReference("Customer", 4) != customer
    assert LazyReference("Order", 3) != customer


def test_validate_reports_mandatory_and_validator_errors():
    customer = Customer(age=-1)
    with pytest.raises(ValidationError) as excinfo:
        customer.validate()
    assert set(excinfo.value.errors) == {"name", "age"}
    assert not customer.is_valid()

    order = Order(total=Decimal("1"))
    with pytest.raises(ValidationError) as excinfo:
        order.validate()
    assert "customer" in excinfo.value.errors


def test_abstract_entity_cannot_be_described():
    class Named(Entity):
        label = StringField()

        class Meta:
            abstract = True

    class Tag(Named):
        pass

    with pytest.raises(ConfigurationError):
        Named.describe()
    assert Tag.describe().column_names == ("id", "deleted", "version", "label")


def test_to_dict_uses_ids_for_references():
    customer = Customer(name="Ada")
    customer._field_values["id"] = 9
    order = Order(customer=customer, total=Decimal("2.5"))
    assert order.to_dict()["customer"] == 9
    assert order.to_dict()["total"] == Decimal("2.50")
