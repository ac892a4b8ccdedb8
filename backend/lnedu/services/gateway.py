# backend/lnedu/services/gateway.py
"""
Cliente HTTP do gateway Asaas (cobranças PIX / boleto / cartão).

Sem retry: qualquer falha vira GatewayError com a mensagem do provedor e o
pedido continua PENDING até o cliente tentar de novo.
"""
from __future__ import annotations

from typing import Any

import requests

from lnedu.core.config import settings
from lnedu.core.exceptions import GatewayError
from lnedu.core.logger import get_logger

log = get_logger("gateway")

PRODUCTION_URL = "https://api.asaas.com/v3"
SANDBOX_URL = "https://sandbox.asaas.com/api/v3"

CONFIRMED_STATUSES = ("CONFIRMED", "RECEIVED")


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    errors = data.get("errors") or []
    if errors and isinstance(errors, list):
        return errors[0].get("description") or str(errors[0])
    return data.get("message") or f"HTTP {resp.status_code}"


class AsaasClient:
    def __init__(self, api_key: str, environment: str = "sandbox", session: requests.Session | None = None, timeout: int = 30):
        self.base_url = PRODUCTION_URL if environment == "production" else SANDBOX_URL
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "access_token": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(self, method: str, path: str, what: str, **kwargs) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.error(f"{what}: falha de rede em {method} {path}: {e}")
            raise GatewayError(f"{what}: {e}") from e

        if resp.status_code >= 400:
            msg = _error_message(resp)
            log.error(f"{what}: {resp.status_code} {msg}")
            try:
                payload = resp.json()
            except ValueError:
                payload = {"raw": resp.text}
            raise GatewayError(f"{what}: {msg}", upstream_status=resp.status_code, payload=payload)

        if not resp.content:
            return {}
        return resp.json()

    # ---------- clientes ----------
    def create_or_update_customer(self, customer: dict) -> dict:
        found = self._request(
            "GET", "/customers", "Erro ao criar cliente no Asaas", params={"cpfCnpj": customer["cpfCnpj"]}
        )
        data = found.get("data") or []
        if data:
            customer_id = data[0]["id"]
            self._request("POST", f"/customers/{customer_id}", "Erro ao atualizar cliente no Asaas", json=customer)
            return {"id": customer_id}
        created = self._request("POST", "/customers", "Erro ao criar cliente no Asaas", json=customer)
        return {"id": created["id"]}

    # ---------- cobranças ----------
    def create_charge(self, charge: dict) -> dict:
        return self._request("POST", "/payments", "Erro ao criar cobrança no Asaas", json=charge)

    def pay_with_credit_card(self, charge_id: str, payment: dict) -> dict:
        return self._request(
            "POST", f"/payments/{charge_id}/payWithCreditCard", "Erro ao processar pagamento", json=payment
        )

    def get_charge(self, charge_id: str) -> dict:
        return self._request("GET", f"/payments/{charge_id}", "Erro ao consultar cobrança")

    def get_pix_qr_code(self, charge_id: str) -> dict:
        return self._request("GET", f"/payments/{charge_id}/pixQrCode", "Erro ao gerar QR Code PIX")

    def delete_charge(self, charge_id: str) -> None:
        self._request("DELETE", f"/payments/{charge_id}", "Erro ao cancelar cobrança")

    def refund_payment(self, charge_id: str, value: float | None = None, description: str | None = None) -> dict:
        body: dict[str, Any] = {}
        if value is not None:
            body["value"] = value
        if description:
            body["description"] = description
        return self._request("POST", f"/payments/{charge_id}/refund", "Erro ao estornar pagamento", json=body)


def get_gateway() -> AsaasClient | None:
    """Dependency: None quando ASAAS_API_KEY não está configurada."""
    if not settings.ASAAS_API_KEY:
        return None
    return AsaasClient(settings.ASAAS_API_KEY, settings.ASAAS_ENVIRONMENT)
