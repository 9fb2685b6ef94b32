"""
Invoice registry - external tax authority check for invoices

The ledger asks the registry whether an invoice (number, amount, tax rate,
issue date, supplier) is genuine before it may back a payment. The check is
never retried by the ledger; a failed call leaves the invoice pending.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

from site_ledger.kernel.errors import ExternalServiceError
from site_ledger.kernel.logging import get_logger

logger = get_logger(__name__)


class ValidationRequest(BaseModel):
    """What the registry is asked to confirm"""

    number: str
    amount: Decimal
    tax_rate: Decimal
    issue_date: date
    supplier_id: str


class ValidationResult(BaseModel):
    """Registry verdict"""

    valid: bool
    message: str | None = None


class InvoiceValidator(Protocol):
    """External invoice validation collaborator"""

    def validate(self, request: ValidationRequest) -> ValidationResult:
        ...


class HttpInvoiceRegistry:
    """
    HTTP client for an invoice registry service

    POSTs the request as JSON to ``{base_url}/invoices/validate`` and expects
    ``{"valid": bool, "message": str | null}`` back.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpInvoiceRegistry":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def validate(self, request: ValidationRequest) -> ValidationResult:
        """
        Ask the registry about one invoice

        Raises:
            ExternalServiceError: On transport errors, non-2xx responses or
                a malformed body
        """
        try:
            response = self._client.post(
                "/invoices/validate", json=request.model_dump(mode="json")
            )
            response.raise_for_status()
            result = ValidationResult.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                "invoice registry", f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError("invoice registry", str(e)) from e
        except ValueError as e:
            # json decode and pydantic validation errors
            raise ExternalServiceError("invoice registry", f"malformed response: {e}") from e

        logger.info(
            "Invoice registry answered",
            number=request.number,
            supplier_id=request.supplier_id,
            valid=result.valid,
        )
        return result
