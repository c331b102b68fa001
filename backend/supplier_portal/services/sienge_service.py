# Overview: Sienge (ERP) creditor adapter; maps suppliers to creditor payloads and posts them over HTTP.

"""
Sienge Creditor Adapter

Two halves:
- map_to_creditor(): pure function, Supplier -> creditor request body.
  Must stay byte-compatible with what the Sienge creditor API accepts.
- SiengeClient: thin httpx wrapper, one POST per call, Basic auth, fixed
  timeout. No automatic retry; retry is a manual action (resend).

RULES:
1. Required source fields are checked before any HTTP call is attempted
2. Optional fields are omitted, never sent as "" or null (some Sienge
   deployments reject unexpected empty fields)
3. Missing credentials are a configuration problem, not an ERP rejection
4. The created id may come back as id, creditorId or entityId
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import httpx
from flask import current_app

from ..validation import ValidationError, only_digits


DEFAULT_CITY_ID = 1
DEFAULT_AGENT_ID = 48
DEFAULT_TIMEOUT_SECONDS = 30.0

# FO = Fornecedor (supplier) creditor type
CREDITOR_TYPES = ["FO"]
DEFAULT_PAYMENT_TYPE_ID = 1
# 1 = commercial phone
COMMERCIAL_PHONE_TYPE = "1"

ACCOUNT_TYPE_CODES = {"checking": "C", "savings": "P"}

CREDITOR_ID_FIELDS = ("id", "creditorId", "entityId")

# Area code (DDD, never starting with 0) followed by an 8 or 9 digit subscriber number
_PHONE_RE = re.compile(r"^([1-9]\d)(\d{8,9})$")


class CreditorMappingError(ValidationError):
    """Supplier data cannot be turned into a creditor request."""


class IntegrationConfigError(Exception):
    """Sienge credentials or base URL are not configured."""


class IntegrationError(Exception):
    """
    Sienge rejected the request or could not be reached.

    kind is one of: invalid_payload, bad_credentials, already_exists,
    erp_internal, http_error, timeout, network.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        status_code: int | None = None,
        response_data: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.response_data = response_data

    def to_record(self, timestamp: str | None = None) -> dict:
        """Shape stored in Supplier.sienge_integration_error."""
        record = {
            "message": self.message,
            "kind": self.kind,
        }
        if self.status_code is not None:
            record["status_code"] = self.status_code
        if self.response_data is not None:
            record["response"] = self.response_data
        if timestamp is not None:
            record["timestamp"] = timestamp
        return record


@dataclass
class CreditorResult:
    creditor_id: str | None
    status_code: int
    data: dict = field(default_factory=dict)


def split_phone(phone: str | None) -> tuple[str, str]:
    """
    Split a Brazilian phone into (ddd, number).

    "11987654321" -> ("11", "987654321"); "987654321" -> ("", "987654321").
    Anything that is not DDD + 8/9 digits keeps all digits as the number.
    """
    digits = only_digits(phone)
    match = _PHONE_RE.match(digits)
    if match:
        return match.group(1), match.group(2)
    return "", digits


def _require(supplier, attr: str, label: str):
    value = getattr(supplier, attr, None)
    if not value:
        raise CreditorMappingError(f"{label} is required")
    return value


def map_to_creditor(supplier, city_id: int | None = None, agent_id: int | None = None) -> dict:
    """
    Build the Sienge creditor request body for a supplier.

    city_id is only a fallback: the supplier's own address.city_id wins
    when it has been resolved.

    Raises:
        CreditorMappingError: company_name, cnpj, phone, email or address missing
    """
    company_name = _require(supplier, "company_name", "companyName")
    cnpj = _require(supplier, "cnpj", "CNPJ")
    phone = _require(supplier, "phone", "phone")
    email = _require(supplier, "email", "email")
    address = _require(supplier, "address", "address")

    city_id = DEFAULT_CITY_ID if city_id is None else city_id
    agent_id = DEFAULT_AGENT_ID if agent_id is None else agent_id

    ddd, number = split_phone(phone)
    register_number = only_digits(cnpj)
    person_type = getattr(supplier, "person_type", None) or "J"

    contact = {
        "name": getattr(supplier, "trade_name", None) or company_name,
        "email": email,
    }
    if ddd:
        contact["phoneDdd"] = ddd
    if number:
        contact["phoneNumber"] = number

    creditor_address = {
        "cityId": address.get("city_id") or city_id,
        "streetName": address.get("street"),
        "number": address.get("number"),
        "neighborhood": address.get("neighborhood"),
        "zipCode": only_digits(address.get("zip_code")),
    }
    if address.get("complement"):
        creditor_address["complement"] = address["complement"]

    request = {
        "name": company_name,
        "personType": person_type,
        "typesId": list(CREDITOR_TYPES),
        "registerNumber": register_number,
        "paymentTypeId": DEFAULT_PAYMENT_TYPE_ID,
        "agents": [{"agentId": agent_id}],
        "contacts": [contact],
        "address": creditor_address,
    }

    if getattr(supplier, "state_registration", None):
        request["stateRegistrationNumber"] = supplier.state_registration
    if getattr(supplier, "state_registration_type", None):
        request["stateRegistrationType"] = supplier.state_registration_type
    # Municipal subscription only exists for legal entities
    if person_type == "J" and getattr(supplier, "municipal_registration", None):
        request["municipalSubscription"] = supplier.municipal_registration
    if ddd and number:
        request["phone"] = {"ddd": ddd, "number": number, "type": COMMERCIAL_PHONE_TYPE}
    if getattr(supplier, "website", None):
        request["website"] = supplier.website

    bank = getattr(supplier, "bank_data", None) or {}
    if bank.get("bank_code") and bank.get("account"):
        statement = {
            "bankCode": only_digits(bank["bank_code"]).zfill(3),
            "accountNumber": bank["account"],
            "accountType": ACCOUNT_TYPE_CODES.get(bank.get("account_type"), "P"),
            "accountBeneficiaryName": company_name,
        }
        if bank.get("agency"):
            statement["bankBranchNumber"] = bank["agency"]
        if bank.get("agency_digit"):
            statement["bankBranchDigit"] = bank["agency_digit"]
        if bank.get("account_digit"):
            statement["accountDigit"] = bank["account_digit"]
        if bank.get("bank"):
            statement["bankName"] = bank["bank"]
        if person_type == "J":
            statement["accountBeneficiaryCnpjNumber"] = register_number
        else:
            statement["accountBeneficiaryCpfNumber"] = register_number
        request["accountStatement"] = statement

    if bank.get("pix_key"):
        request.setdefault("accountStatement", {})["pixKey"] = bank["pix_key"]

    return request


def extract_creditor_id(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in CREDITOR_ID_FIELDS:
        value = data.get(key)
        if value:
            return str(value)
    return None


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def classify_http_error(status_code: int, body: Any) -> IntegrationError:
    if status_code == 400:
        return IntegrationError(
            f"Invalid creditor data: {body}",
            kind="invalid_payload", status_code=status_code, response_data=body,
        )
    if status_code == 401:
        return IntegrationError(
            f"Sienge authentication failed: credentials invalid or expired. Response: {body}",
            kind="bad_credentials", status_code=status_code, response_data=body,
        )
    if status_code == 409:
        return IntegrationError(
            "Creditor already exists in Sienge",
            kind="already_exists", status_code=status_code, response_data=body,
        )
    if status_code == 500:
        return IntegrationError(
            "Sienge internal server error",
            kind="erp_internal", status_code=status_code, response_data=body,
        )
    return IntegrationError(
        f"Sienge integration failed with HTTP {status_code}",
        kind="http_error", status_code=status_code, response_data=body,
    )


class SiengeClient:
    """
    Creditor endpoint client.

    transport is injectable so tests can run against httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        if not base_url:
            raise IntegrationConfigError("SIENGE_BASE_URL is not configured")
        username = (username or "").strip()
        password = (password or "").strip()
        if not username or not password:
            raise IntegrationConfigError(
                "Sienge credentials are not configured. Set SIENGE_USERNAME and SIENGE_PASSWORD."
            )
        self.base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(username, password)
        self.timeout = timeout
        self._transport = transport

    @property
    def creditors_url(self) -> str:
        return f"{self.base_url}/creditors"

    def create_creditor(self, payload: dict) -> CreditorResult:
        """
        POST one creditor. Single attempt.

        Raises:
            IntegrationError: HTTP 4xx/5xx, timeout or network failure
        """
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    self.creditors_url,
                    json=payload,
                    auth=self._auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise IntegrationError(
                f"Sienge did not answer within {self.timeout:g}s", kind="timeout",
            ) from exc
        except httpx.RequestError as exc:
            raise IntegrationError(
                f"Could not reach Sienge: {exc}", kind="network",
            ) from exc

        body = _response_body(response)
        if response.is_error:
            raise classify_http_error(response.status_code, body)

        data = body if isinstance(body, dict) else {}
        return CreditorResult(
            creditor_id=extract_creditor_id(data),
            status_code=response.status_code,
            data=data,
        )


def build_client_from_config(config) -> SiengeClient:
    return SiengeClient(
        config.get("SIENGE_BASE_URL"),
        config.get("SIENGE_USERNAME"),
        config.get("SIENGE_PASSWORD"),
        timeout=float(config.get("SIENGE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
    )


def get_client() -> SiengeClient:
    """
    Client for the current app. An instance placed in
    app.extensions["sienge_client"] wins over configuration.

    Raises:
        IntegrationConfigError: credentials missing
    """
    client = current_app.extensions.get("sienge_client")
    if client is not None:
        return client
    return build_client_from_config(current_app.config)


def map_with_app_defaults(supplier) -> dict:
    return map_to_creditor(
        supplier,
        city_id=current_app.config.get("SIENGE_DEFAULT_CITY_ID", DEFAULT_CITY_ID),
        agent_id=current_app.config.get("SIENGE_DEFAULT_AGENT_ID", DEFAULT_AGENT_ID),
    )


def send_creditor(client: SiengeClient, supplier, payload: dict) -> CreditorResult:
    """POST payload for supplier, logging the call without credentials or body."""
    logger = current_app.logger
    logger.info(
        "Calling Sienge creditor API url=%s supplier_id=%s company=%s has_auth=%s",
        client.creditors_url, supplier.id, payload.get("name"), True,
    )
    try:
        result = client.create_creditor(payload)
    except IntegrationError as exc:
        logger.error(
            "Sienge creditor call failed supplier_id=%s kind=%s status=%s",
            supplier.id, exc.kind, exc.status_code,
        )
        raise

    if not result.creditor_id:
        logger.warning(
            "Sienge response has no creditor id supplier_id=%s status=%s keys=%s",
            supplier.id, result.status_code, sorted(result.data.keys()),
        )
    else:
        logger.info(
            "Sienge creditor created supplier_id=%s creditor_id=%s",
            supplier.id, result.creditor_id,
        )
    return result
