"""
Creditor payload mapping tests.

Verifies:
- Phone splitting into DDD and subscriber number
- Required source fields fail before any HTTP call
- Optional fields are omitted, never sent empty
- Bank statement shape (zero-filled bank code, CNPJ vs CPF beneficiary)
- Creditor id extraction from the alternative response keys
"""

import pytest

from supplier_portal.models import Supplier
from supplier_portal.services.sienge_service import (
    CreditorMappingError,
    extract_creditor_id,
    map_to_creditor,
    split_phone,
)


def _supplier(**overrides):
    fields = {
        "company_name": "Limpa Tudo Servicos Ltda",
        "cnpj": "12345678000199",
        "email": "contato@limpatudo.com.br",
        "phone": "11987654321",
        "address": {
            "street": "Rua das Flores",
            "number": "120",
            "neighborhood": "Centro",
            "city": "Sao Paulo",
            "state": "SP",
            "zip_code": "01001-000",
        },
        "bank_data": {},
    }
    fields.update(overrides)
    return Supplier(**fields)


def _walk_values(value):
    if isinstance(value, dict):
        for v in value.values():
            yield from _walk_values(v)
    elif isinstance(value, list):
        for v in value:
            yield from _walk_values(v)
    else:
        yield value


class TestSplitPhone:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("11987654321", ("11", "987654321")),
            ("(11) 98765-4321", ("11", "987654321")),
            ("4733221100", ("47", "33221100")),
            ("987654321", ("", "987654321")),
            ("", ("", "")),
            (None, ("", "")),
        ],
    )
    def test_split(self, raw, expected):
        assert split_phone(raw) == expected


class TestRequiredFields:

    @pytest.mark.parametrize("field", ["company_name", "cnpj", "phone", "email", "address"])
    def test_missing_required_field_is_mapping_error(self, field):
        supplier = _supplier(**{field: None})
        with pytest.raises(CreditorMappingError):
            map_to_creditor(supplier)


class TestPayloadShape:

    def test_minimal_supplier_has_no_optional_keys(self):
        payload = map_to_creditor(_supplier(phone="987654321"))

        for key in (
            "stateRegistrationNumber",
            "stateRegistrationType",
            "municipalSubscription",
            "website",
            "accountStatement",
            "phone",
        ):
            assert key not in payload
        assert "complement" not in payload["address"]
        assert "phoneDdd" not in payload["contacts"][0]
        for value in _walk_values(payload):
            assert value not in ("", None)

    def test_base_fields(self):
        payload = map_to_creditor(_supplier(), city_id=7, agent_id=48)

        assert payload["name"] == "Limpa Tudo Servicos Ltda"
        assert payload["personType"] == "J"
        assert payload["typesId"] == ["FO"]
        assert payload["registerNumber"] == "12345678000199"
        assert payload["paymentTypeId"] == 1
        assert payload["agents"] == [{"agentId": 48}]
        assert payload["address"]["cityId"] == 7
        assert payload["address"]["zipCode"] == "01001000"
        assert payload["phone"] == {"ddd": "11", "number": "987654321", "type": "1"}
        assert payload["contacts"][0] == {
            "name": "Limpa Tudo Servicos Ltda",
            "email": "contato@limpatudo.com.br",
            "phoneDdd": "11",
            "phoneNumber": "987654321",
        }

    def test_resolved_city_id_wins_over_fallback(self):
        supplier = _supplier()
        supplier.address = {**supplier.address, "city_id": 4205}
        assert map_to_creditor(supplier, city_id=1)["address"]["cityId"] == 4205

    def test_trade_name_used_as_contact_name(self):
        payload = map_to_creditor(_supplier(trade_name="Limpa Tudo"))
        assert payload["contacts"][0]["name"] == "Limpa Tudo"

    def test_fiscal_fields_included_when_present(self):
        payload = map_to_creditor(_supplier(
            state_registration="254789631",
            state_registration_type="C",
            municipal_registration="998877",
            website="https://limpatudo.com.br",
        ))
        assert payload["stateRegistrationNumber"] == "254789631"
        assert payload["stateRegistrationType"] == "C"
        assert payload["municipalSubscription"] == "998877"
        assert payload["website"] == "https://limpatudo.com.br"

    def test_municipal_subscription_only_for_legal_entities(self):
        payload = map_to_creditor(_supplier(
            person_type="F", cnpj="12345678909", municipal_registration="998877",
        ))
        assert "municipalSubscription" not in payload


class TestAccountStatement:

    def test_legal_entity_statement(self):
        payload = map_to_creditor(_supplier(bank_data={
            "bank": "Banco do Brasil",
            "bank_code": "1",
            "agency": "1234",
            "agency_digit": "5",
            "account": "98765",
            "account_digit": "0",
            "account_type": "checking",
        }))
        assert payload["accountStatement"] == {
            "bankCode": "001",
            "bankBranchNumber": "1234",
            "bankBranchDigit": "5",
            "accountNumber": "98765",
            "accountDigit": "0",
            "accountType": "C",
            "bankName": "Banco do Brasil",
            "accountBeneficiaryName": "Limpa Tudo Servicos Ltda",
            "accountBeneficiaryCnpjNumber": "12345678000199",
        }

    def test_individual_uses_cpf_beneficiary(self):
        payload = map_to_creditor(_supplier(
            person_type="F",
            cnpj="123.456.789-09",
            bank_data={"bank_code": "341", "account": "555", "account_type": "savings"},
        ))
        statement = payload["accountStatement"]
        assert statement["accountBeneficiaryCpfNumber"] == "12345678909"
        assert "accountBeneficiaryCnpjNumber" not in statement
        assert statement["accountType"] == "P"

    def test_pix_key_without_bank_account(self):
        payload = map_to_creditor(_supplier(bank_data={"pix_key": "contato@limpatudo.com.br"}))
        assert payload["accountStatement"] == {"pixKey": "contato@limpatudo.com.br"}


class TestExtractCreditorId:

    @pytest.mark.parametrize(
        "body,expected",
        [
            ({"id": 123}, "123"),
            ({"creditorId": "456"}, "456"),
            ({"entityId": 789}, "789"),
            ({"id": None, "creditorId": 5}, "5"),
            ({}, None),
            ("created", None),
        ],
    )
    def test_extract(self, body, expected):
        assert extract_creditor_id(body) == expected
