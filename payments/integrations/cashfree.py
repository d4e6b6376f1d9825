import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal

import requests
from requests import RequestException
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from qwiky.exceptions import ApiError

logger = logging.getLogger(__name__)

GATEWAY_NAME = "Cashfree"
DEFAULT_API_VERSION = "2023-08-01"
BASE_URLS = {
    "SANDBOX": "https://sandbox.cashfree.com/pg",
    "PRODUCTION": "https://api.cashfree.com/pg",
}


class GatewayError(ApiError):
    status_code = 502
    default_message = "Payment gateway error"


class GatewayUnavailable(GatewayError):
    """Transport failure or 5xx from the gateway. Safe to retry."""

    status_code = 503
    default_message = "Payment gateway unavailable"


class GatewayRejected(GatewayError):
    """The gateway refused the request (4xx). Retrying needs different input."""

    status_code = 400
    default_message = "Payment gateway rejected the request"

    def __init__(self, message=None, *, payload=None, http_status=None):
        super().__init__(message, gatewayError=payload)
        self.payload = payload
        self.http_status = http_status


@dataclass(frozen=True)
class CashfreeConfig:
    environment: str
    app_id: str
    secret_key: str
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return BASE_URLS[self.environment]

    @property
    def is_production(self) -> bool:
        return self.environment == "PRODUCTION"

    @classmethod
    def from_settings(cls) -> "CashfreeConfig":
        """Resolve environment and credentials once.

        ``CASHFREE_ENV=PRODUCTION`` uses ``CASHFREE_APP_ID_PROD`` /
        ``CASHFREE_SECRET_KEY_PROD``; anything else must be ``SANDBOX`` and uses
        ``CASHFREE_APP_ID`` / ``CASHFREE_SECRET_KEY``. A missing credential for
        the selected environment raises :class:`ImproperlyConfigured`.
        """
        environment = str(getattr(settings, "CASHFREE_ENV", "SANDBOX") or "SANDBOX").upper()
        if environment not in BASE_URLS:
            logger.error("CASHFREE_ENV must be SANDBOX or PRODUCTION, got %r", environment)
            raise ImproperlyConfigured("CASHFREE_ENV must be SANDBOX or PRODUCTION")

        if environment == "PRODUCTION":
            app_id = getattr(settings, "CASHFREE_APP_ID_PROD", "")
            secret_key = getattr(settings, "CASHFREE_SECRET_KEY_PROD", "")
        else:
            app_id = getattr(settings, "CASHFREE_APP_ID", "")
            secret_key = getattr(settings, "CASHFREE_SECRET_KEY", "")

        if not app_id or not secret_key:
            logger.error("Missing Cashfree credentials for environment %s", environment)
            raise ImproperlyConfigured(f"Cashfree credentials missing for {environment}")

        return cls(
            environment=environment,
            app_id=app_id,
            secret_key=secret_key,
            api_version=getattr(settings, "CASHFREE_API_VERSION", DEFAULT_API_VERSION),
            timeout=float(getattr(settings, "CASHFREE_TIMEOUT", 30)),
        )


@dataclass
class GatewayOrder:
    gateway_order_id: str
    payment_session_id: str
    raw: dict


@dataclass
class GatewayOrderStatus:
    order_ref: str
    order_status: str
    payment_status: str
    amount: Decimal | None
    payment_time: str | None
    gateway_order_id: str
    raw: dict


def _body(resp) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {"raw": resp.text}
    return data if isinstance(data, dict) else {"data": data}


class CashfreeClient:
    """Thin wrapper over the Cashfree PG order APIs."""

    def __init__(self, config: CashfreeConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-version": config.api_version,
            "x-client-id": config.app_id,
            "x-client-secret": config.secret_key,
        }

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.config.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, json=payload, headers=self.headers, timeout=self.config.timeout
            )
        except RequestException as e:
            logger.error("Cashfree %s %s failed: %s", method, path, e)
            raise GatewayUnavailable(f"Gateway request failed: {e}")

        data = _body(resp)
        if resp.status_code >= 500:
            logger.error("Cashfree %s %s returned %s: %s", method, path, resp.status_code, data)
            raise GatewayUnavailable(f"Gateway error {resp.status_code}")
        if resp.status_code >= 400:
            logger.warning("Cashfree %s %s rejected with %s: %s", method, path, resp.status_code, data)
            raise GatewayRejected(
                data.get("message") or f"Gateway rejected request (HTTP {resp.status_code})",
                payload=data,
                http_status=resp.status_code,
            )
        return data

    def create_order(self, *, order_ref: str, amount, currency: str, customer: dict,
                     return_url: str, notify_url: str) -> GatewayOrder:
        logger.info(
            "Creating Cashfree order ref=%s amount=%s environment=%s",
            order_ref, amount, self.config.environment,
        )
        payload = {
            "order_id": order_ref,
            "order_amount": float(Decimal(str(amount))),
            "order_currency": currency,
            "customer_details": customer,
            "order_meta": {
                "return_url": return_url,
                "notify_url": notify_url,
            },
        }
        data = self._request("POST", "/orders", payload)
        session_id = data.get("payment_session_id")
        if not session_id:
            logger.error("Cashfree order ref=%s created without a payment session: %s", order_ref, data)
            raise GatewayRejected("Gateway did not return a payment session", payload=data)

        logger.info("Cashfree order created ref=%s cf_order_id=%s", order_ref, data.get("cf_order_id"))
        return GatewayOrder(
            gateway_order_id=str(data.get("cf_order_id") or ""),
            payment_session_id=session_id,
            raw=data,
        )

    def get_order_status(self, order_ref: str) -> GatewayOrderStatus:
        logger.info("Getting Cashfree order status ref=%s", order_ref)
        data = self._request("GET", f"/orders/{order_ref}")
        amount = data.get("order_amount")
        status = GatewayOrderStatus(
            order_ref=data.get("order_id") or order_ref,
            order_status=str(data.get("order_status") or "").upper(),
            payment_status=str(data.get("payment_status") or "").upper(),
            amount=Decimal(str(amount)) if amount is not None else None,
            payment_time=data.get("payment_time"),
            gateway_order_id=str(data.get("cf_order_id") or ""),
            raw=data,
        )
        logger.info(
            "Cashfree order status ref=%s order_status=%s payment_status=%s",
            order_ref, status.order_status, status.payment_status,
        )
        return status

    def get_payment_details(self, order_ref: str, payment_id: str) -> dict:
        return self._request("GET", f"/orders/{order_ref}/payments/{payment_id}")


def build_gateway_client() -> CashfreeClient:
    return CashfreeClient(CashfreeConfig.from_settings())


def verify_webhook_signature(raw_body: bytes, timestamp: str, signature: str, secret: str) -> bool:
    """Check ``x-webhook-signature``: base64(HMAC-SHA256(timestamp + body, secret))."""
    if not (timestamp and signature and secret):
        return False
    message = timestamp.encode("utf-8") + raw_body
    expected = base64.b64encode(
        hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    ).decode("utf-8")
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))
