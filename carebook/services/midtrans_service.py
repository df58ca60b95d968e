"""Midtrans service - Snap checkout and Core API transaction calls"""

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

import httpx

from carebook.config.payment_config import payment_config
from carebook.utils.errors import GatewayError

logger = logging.getLogger(__name__)


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """SHA-512 hex digest of order_id + status_code + gross_amount + server_key"""
    payload = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(payload.encode("utf-8")).hexdigest()


def verify_signature(order_id: str, status_code: str, gross_amount: str, server_key: str, signature: str) -> bool:
    if not signature or not server_key:
        return False
    expected = compute_signature(order_id, status_code, gross_amount, server_key)
    return hmac.compare_digest(expected, signature)


class MidtransGateway:
    """Thin client over the Snap and Core APIs"""

    def __init__(
        self,
        server_key: Optional[str] = None,
        snap_base_url: Optional[str] = None,
        core_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.server_key = server_key if server_key is not None else payment_config.MIDTRANS_SERVER_KEY
        self.snap_base_url = snap_base_url or payment_config.snap_base_url
        self.core_base_url = core_base_url or payment_config.core_base_url

        if not self.server_key:
            logger.warning("MIDTRANS_SERVER_KEY not set; gateway calls will be rejected")

        # Basic auth: server key as username, empty password
        token = base64.b64encode(f"{self.server_key}:".encode("utf-8")).decode("ascii")
        self.client = httpx.Client(
            timeout=timeout or payment_config.MIDTRANS_TIMEOUT_SECONDS,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": f"Basic {token}",
            },
        )

    def close(self):
        self.client.close()

    def _request(self, method: str, url: str, json: Optional[dict] = None) -> Dict[str, Any]:
        try:
            response = self.client.request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.error(f"❌ Midtrans request failed: {method} {url}: {e}")
            raise GatewayError("Payment gateway is unreachable", details={"reason": str(e)}) from e

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400:
            logger.error(f"❌ Midtrans {method} {url} returned {response.status_code}: {body}")
            raise GatewayError(
                "Payment gateway rejected the request",
                status_code=response.status_code,
                details=body,
            )

        # Core API reports failures in the body with HTTP 200; an expired
        # transaction still answers 407 together with its transaction_status
        if not isinstance(body, dict):
            return {"raw": body}
        body_status = str(body.get("status_code", "200"))
        if not body_status.startswith("2") and "transaction_status" not in body:
            logger.warning(f"Midtrans {method} {url} answered status_code={body_status}: {body.get('status_message')}")
            raise GatewayError(
                body.get("status_message") or "Payment gateway rejected the request",
                status_code=int(body_status) if body_status.isdigit() else None,
                details=body,
            )

        return body

    def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        customer: Dict[str, Any],
        items: List[Dict[str, Any]]
    ) -> Dict[str, str]:
        """Create a Snap transaction and return its token and redirect URL"""
        payload = {
            "transaction_details": {
                "order_id": order_id,
                "gross_amount": gross_amount,
            },
            "customer_details": {
                "first_name": customer.get("first_name", ""),
                "last_name": customer.get("last_name", ""),
                "email": customer.get("email", ""),
                "phone": customer.get("phone", ""),
            },
            "item_details": items,
            # Snap stops accepting payment when the local expiry_time passes
            "expiry": {
                "unit": "hour",
                "duration": payment_config.PAYMENT_EXPIRY_HOURS,
            },
            "callbacks": {
                "finish": f"{payment_config.APP_URL}/payment/finish",
            },
        }

        body = self._request("POST", f"{self.snap_base_url}/transactions", json=payload)
        if not body.get("token"):
            raise GatewayError("Payment gateway did not return a checkout token", details=body)

        logger.info(f"✓ Snap transaction created for {order_id}")
        return {"token": body["token"], "redirect_url": body.get("redirect_url")}

    def get_transaction_status(self, order_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{self.core_base_url}/{order_id}/status")

    def cancel_transaction(self, order_id: str) -> Dict[str, Any]:
        return self._request("POST", f"{self.core_base_url}/{order_id}/cancel")

    def expire_transaction(self, order_id: str) -> Dict[str, Any]:
        return self._request("POST", f"{self.core_base_url}/{order_id}/expire")

    def verify_signature(self, order_id: str, status_code: str, gross_amount: str, signature: str) -> bool:
        return verify_signature(order_id, status_code, gross_amount, self.server_key, signature)


_gateway: Optional[MidtransGateway] = None


def get_payment_gateway() -> MidtransGateway:
    """FastAPI dependency returning the process-wide gateway client"""
    global _gateway
    if _gateway is None:
        _gateway = MidtransGateway()
    return _gateway
