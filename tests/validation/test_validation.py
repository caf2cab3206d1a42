import pytest

from kestrel.core import Entity, IntegerField, StringField
from kestrel.validation import (
    MaxValueValidator,
    MinValueValidator,
    RegexValidator,
    ValidationError,
    validate_entity,
)


class Profile(Entity):
    username = StringField(mandatory=True, validators=[RegexValidator(r"[a-z0-9_]+")])
    age = IntegerField(default=18, validators=[MinValueValidator(0), MaxValueValidator(150)])


def test_field_validation_error():
    profile = Profile(username="Invalid-Name")
    with pytest.raises(ValidationError) as excinfo:
        validate_entity(profile)
    assert "username" in excinfo.value.errors
    assert excinfo.value.context["entity"] == "Profile"
    assert excinfo.value.message.startswith("Profile: username:")


def test_errors_are_collected_for_every_field():
    profile = Profile(age=200)
    with pytest.raises(ValidationError) as excinfo:
        profile.validate()
    assert excinfo.value.errors == {
        "username": ["This field is mandatory."],
        "age": ["Ensure value is at most 150."],
    }


def test_entity_clean_hook():
    class Signup(Entity):
        email = StringField(mandatory=True)
        confirm_email = StringField(mandatory=True)

        def clean(self):
            if self.email != self.confirm_email:
                raise ValidationError({"email": ["Emails must match."]})

    signup = Signup(email="a@example.com", confirm_email="b@example.com")
    with pytest.raises(ValidationError) as excinfo:
        signup.validate()
    assert excinfo.value.errors["email"] == ["Emails must match."]


def test_clean_value_error_is_a_non_field_error():
    class Range(Entity):
        low = IntegerField()
        high = IntegerField()

        def clean(self):
            if self.low is not None and self.high is not None and self.low > self.high:
                raise ValueError("low must not exceed high")

    with pytest.raises(ValidationError) as excinfo:
        Range(low=5, high=1).validate()
    assert excinfo.value.errors == {"__all__": ["low must not exceed high"]}
    assert "non-field" in excinfo.value.message


def test_optional_fields_pass():
    class Note(Entity):
        text = StringField()

    Note().validate()
    assert Note().is_valid()


def test_regex_validator_rejects_non_strings():
    with pytest.raises(TypeError):
        RegexValidator(r"\d+")(12)
    RegexValidator(r"\d+")("12")
