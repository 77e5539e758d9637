from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.exceptions import validation_message
from app.models.property import TransactionType, icon_key
from app.schemas.property import Coords, PropertyCreate, PropertyUpdate, check_prices
from app.schemas.user import ChangePhoneRequest, RegisterRequest, SessionUser

BASE = {
    "name": "Casa",
    "description": "Ampla",
    "contact": "11999990000",
    "coords": {"lat": -23.5, "lng": -46.6},
}


class TestCoords:

    def test_object_and_pair_forms(self):
        assert Coords.model_validate({"lat": 1, "lng": 2}) == Coords(lat=1, lng=2)
        assert Coords.model_validate([1, 2]) == Coords(lat=1, lng=2)
        assert Coords.model_validate('{"lat": 1, "lng": 2}') == Coords(lat=1, lng=2)

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            Coords(lat=91, lng=0)
        with pytest.raises(ValidationError):
            Coords(lat=0, lng=-181)


class TestPriceRules:

    def test_sell_requires_positive_sale_price(self):
        with pytest.raises(ValueError):
            check_prices("Sell", Decimal("0"), None, None)
        check_prices("Sell", Decimal("1"), None, None)

    def test_rent_requires_rental_price_and_period(self):
        with pytest.raises(ValueError):
            check_prices("Rent", None, None, None)
        with pytest.raises(ValueError):
            check_prices("Rent", None, Decimal("1500"), None)
        check_prices("Rent", None, Decimal("1500"), "per Month")

    def test_both_requires_both_prices(self):
        with pytest.raises(ValueError):
            check_prices("Both", Decimal("100000"), None, None)
        check_prices("Both", Decimal("100000"), Decimal("1500"), "per Month")


class TestPropertyCreate:

    def test_defaults(self):
        data = PropertyCreate.model_validate({**BASE, "salePrice": "250000"})
        assert data.transaction_type == TransactionType.SELL
        assert data.property_type == "House"
        assert data.contact_method == "whatsapp"
        assert data.neighborhood is None

    @pytest.mark.parametrize("price", ["0", "-10", ""])
    def test_sell_with_non_positive_price_fails(self, price):
        with pytest.raises(ValidationError):
            PropertyCreate.model_validate({**BASE, "transactionType": "Sell", "salePrice": price})

    def test_transaction_type_is_case_insensitive(self):
        data = PropertyCreate.model_validate(
            {**BASE, "transactionType": "rent", "rentalPrice": "900", "rentalPeriod": "per Month"}
        )
        assert data.transaction_type == TransactionType.RENT

    def test_unknown_transaction_type(self):
        with pytest.raises(ValidationError):
            PropertyCreate.model_validate({**BASE, "transactionType": "Lease", "salePrice": "1"})


class TestPropertyUpdate:

    def test_omitted_fields_are_unset(self):
        changes = PropertyUpdate.model_validate({"salePrice": "120000"})
        assert changes.model_fields_set == {"sale_price"}

    def test_blank_optional_field_is_an_explicit_clear(self):
        changes = PropertyUpdate.model_validate({"neighborhood": ""})
        assert "neighborhood" in changes.model_fields_set
        assert changes.neighborhood is None

    def test_required_field_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            PropertyUpdate.model_validate({"name": None})

    def test_empty_update(self):
        assert PropertyUpdate().model_fields_set == set()


class TestValidationMessage:

    def test_field_error_is_prefixed_with_the_field(self):
        with pytest.raises(ValidationError) as exc:
            PropertyCreate.model_validate({**BASE, "salePrice": "abc"})
        assert validation_message(exc.value.errors()).startswith("salePrice: ")

    def test_model_level_error_has_no_prefix(self):
        with pytest.raises(ValidationError) as exc:
            PropertyCreate.model_validate({**BASE, "transactionType": "Rent"})
        assert validation_message(exc.value.errors()) == (
            "rentalPrice must be greater than zero for transaction type Rent"
        )

    def test_request_locations_are_dropped(self):
        errors = [{"loc": ("body", "newEmail"), "msg": "value is not a valid email address"}]
        assert validation_message(errors) == "newEmail: value is not a valid email address"
        assert validation_message([]) == "Invalid request."


class TestUserSchemas:

    def test_register_normalizes_input(self):
        req = RegisterRequest.model_validate(
            {"username": "  Alice ", "password": "secret123", "role": "owner", "email": "", "phone": "(11) 99999-0000"}
        )
        assert req.username == "Alice"
        assert req.email is None
        assert req.phone == "11999990000"

    def test_register_rejects_short_password_and_bad_role(self):
        with pytest.raises(ValidationError):
            RegisterRequest.model_validate({"username": "alice", "password": "123", "role": "owner"})
        with pytest.raises(ValidationError):
            RegisterRequest.model_validate({"username": "alice", "password": "secret123", "role": "admin"})

    def test_invalid_phone(self):
        with pytest.raises(ValidationError):
            ChangePhoneRequest.model_validate({"newPhone": "12ab"})

    def test_session_snapshot_uses_camel_case(self):
        user = SessionUser(id="1", username="alice", role="owner", is_moderator=True)
        assert user.to_session_data() == {
            "id": "1",
            "username": "alice",
            "role": "owner",
            "isModerator": True,
            "email": None,
        }


@pytest.mark.parametrize(
    "property_type,expected",
    [("House", "house"), ("Pool House", "droplet"), ("Castle", "generic"), (None, "generic")],
)
def test_icon_key(property_type, expected):
    assert icon_key(property_type) == expected
