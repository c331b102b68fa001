"""
City reference lookup tests.

The Sienge city id is resolved from name + state against a static dataset.
"""

import json

import pytest

from supplier_portal.services import city_service, sienge_service, supplier_service

from conftest import supplier_payload


CITIES = [
    {"id": 4205, "name": "Jaraguá do Sul", "state": {"code": "SC", "name": "Santa Catarina"}},
    {"id": 4209, "name": "Joinville", "state": {"code": "SC", "name": "Santa Catarina"}},
    {"id": 3550, "name": "São Paulo", "state": {"code": "SP", "name": "São Paulo"}},
    {"id": 3509, "name": "Campinas", "state": {"code": "SP", "name": "São Paulo"}},
    {"id": 2611, "name": "São José da Coroa Grande", "state": "PE"},
    {"id": 4216, "name": "São José", "state": {"code": "SC", "name": "Santa Catarina"}},
]


@pytest.fixture
def cities_file(app, tmp_path, monkeypatch):
    path = tmp_path / "cities.json"
    path.write_text(json.dumps({"results": CITIES}), encoding="utf-8")
    monkeypatch.setitem(app.config, "CITIES_DATASET_PATH", str(path))
    return path


class TestFindCity:

    @pytest.mark.parametrize(
        "name,state,expected",
        [
            ("Jaraguá do Sul", "SC", 4205),
            ("jaragua do sul", "sc", 4205),
            ("SAO PAULO", "SP", 3550),
            ("Sao Paulo", "São Paulo", 3550),
            ("Camp", "SP", 3509),
            ("Coroa", "PE", 2611),
            ("São José", "SC", 4216),
        ],
    )
    def test_matches(self, name, state, expected):
        assert city_service.find_city_id(CITIES, name, state) == expected

    def test_exact_beats_prefix(self):
        cities = [{"id": 9999, "name": "São José dos Campos", "state": {"code": "SC"}}] + CITIES
        assert city_service.find_city_id(cities, "Sao Jose", "SC") == 4216

    @pytest.mark.parametrize(
        "name,state",
        [
            ("Joinville", "SP"),
            ("Curitiba", "PR"),
            ("", "SC"),
            ("Joinville", None),
        ],
    )
    def test_no_match(self, name, state):
        assert city_service.find_city_id(CITIES, name, state) is None


class TestResolve:

    def test_no_dataset_configured(self, app):
        assert city_service.resolve_city_id("Joinville", "SC") is None

    def test_dataset_lookup(self, cities_file):
        assert city_service.resolve_city_id("Joinville", "SC") == 4209

    def test_plain_list_dataset(self, app, tmp_path, monkeypatch):
        path = tmp_path / "plain.json"
        path.write_text(json.dumps(CITIES), encoding="utf-8")
        monkeypatch.setitem(app.config, "CITIES_DATASET_PATH", str(path))

        assert city_service.resolve_city_id("Campinas", "SP") == 3509

    def test_unreadable_dataset(self, app, tmp_path, monkeypatch):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        monkeypatch.setitem(app.config, "CITIES_DATASET_PATH", str(path))

        assert city_service.resolve_city_id("Campinas", "SP") is None

    def test_explicit_city_id_kept(self, cities_file):
        address = {"city": "Joinville", "state": "SC", "city_id": 1}
        assert city_service.with_resolved_city(address) == address

    def test_submission_fills_city_id(self, cities_file, staff_user):
        payload = supplier_payload()
        payload["address"] = {**payload["address"], "city": "São Paulo", "state": "SP"}

        supplier, _, _ = supplier_service.submit_supplier(staff_user, payload)

        assert supplier.address["city_id"] == 3550

    def _submit_in_sao_paulo(self, staff_user):
        payload = supplier_payload()
        payload["address"] = {**payload["address"], "city": "São Paulo", "state": "SP"}
        supplier, _, _ = supplier_service.submit_supplier(staff_user, payload)
        assert supplier.address["city_id"] == 3550
        return supplier

    def test_edit_city_resolves_new_city_id(self, cities_file, staff_user):
        supplier = self._submit_in_sao_paulo(staff_user)

        edited = supplier_service.edit_supplier(staff_user, supplier.id, {"address": {"city": "Campinas"}})

        assert edited.address["city"] == "Campinas"
        assert edited.address["city_id"] == 3509
        assert sienge_service.map_with_app_defaults(edited)["address"]["cityId"] == 3509

    def test_edit_to_unknown_city_drops_city_id(self, cities_file, staff_user):
        supplier = self._submit_in_sao_paulo(staff_user)

        edited = supplier_service.edit_supplier(
            staff_user, supplier.id, {"address": {"city": "Curitiba", "state": "PR"}},
        )

        assert "city_id" not in edited.address
        assert sienge_service.map_with_app_defaults(edited)["address"]["cityId"] == sienge_service.DEFAULT_CITY_ID

    def test_edit_with_explicit_city_id_keeps_it(self, cities_file, staff_user):
        supplier = self._submit_in_sao_paulo(staff_user)

        edited = supplier_service.edit_supplier(
            staff_user, supplier.id, {"address": {"city": "Campinas", "city_id": 777}},
        )

        assert edited.address["city_id"] == 777

    def test_edit_other_address_field_keeps_city_id(self, cities_file, staff_user):
        supplier = self._submit_in_sao_paulo(staff_user)

        edited = supplier_service.edit_supplier(staff_user, supplier.id, {"address": {"number": "99"}})

        assert edited.address["city_id"] == 3550
