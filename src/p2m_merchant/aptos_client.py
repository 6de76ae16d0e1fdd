"""
UPI registry client over the Aptos fullnode REST API.

Views go through ``POST /v1/view``. Writes are built as JSON entry-function
transactions, encoded by the node (``/v1/transactions/encode_submission``),
signed locally with the merchant's Ed25519 key and submitted; the client
then polls until the transaction is committed.

Example usage:
    ```python
    async with AptosRegistryClient(
        node_url="https://fullnode.devnet.aptoslabs.com",
        contract_address="0xf9d5...fea5",
        account=KeyPair.from_private_key(key),
    ) as client:
        if not await client.exists("shop@bank"):
            tx_hash = await client.register("shop@bank")
    ```
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, List, Optional

import httpx

from .exceptions import (
    AmbiguousCommitError,
    DuplicateRegistrationError,
    OperatorAccountMissingError,
    RemoteCallError,
)
from .models import RegistryStats
from .registry_client import RegistryClient
from .wallet_factory import KeyPair

logger = logging.getLogger(__name__)

MODULE_NAME = "upi_registry"

# Move abort codes that mean "this binding already exists"
_DUPLICATE_MARKERS = ("ALREADY_EXISTS", "ALREADY_REGISTERED")


class AptosRegistryClient(RegistryClient):
    """
    Registry client for the ``upi_registry`` Move module.

    Args:
        node_url: Fullnode base URL (without ``/v1``)
        contract_address: Address the module is published under
        account: Merchant signing key pair, required for writes
        timeout: Per-request timeout in seconds
        wait_timeout: How long to wait for a submitted transaction to commit
        poll_interval: Delay between commit polls
        max_gas_amount: Gas limit for write transactions
    """

    DEFAULT_TIMEOUT = 30.0
    USER_AGENT = "p2m-merchant/0.1.0"

    def __init__(
        self,
        node_url: str,
        contract_address: str,
        account: Optional[KeyPair] = None,
        timeout: float = DEFAULT_TIMEOUT,
        wait_timeout: float = 30.0,
        poll_interval: float = 1.0,
        max_gas_amount: int = 10_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not contract_address:
            raise ValueError("contract_address is required")
        self._node_url = node_url.rstrip("/")
        self._contract_address = contract_address
        self._account = account
        self._timeout = timeout
        self._wait_timeout = wait_timeout
        self._poll_interval = poll_interval
        self._max_gas_amount = max_gas_amount
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def contract_address(self) -> str:
        return self._contract_address

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._node_url,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": self.USER_AGENT,
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _error_from_response(response: httpx.Response) -> RemoteCallError:
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        if not isinstance(body, dict):
            body = {"message": str(body)}
        message = body.get("message") or f"HTTP {response.status_code}"
        vm_status = body.get("vm_error_code")
        return RemoteCallError(
            f"[{response.status_code}] {message}",
            vm_status=str(vm_status) if vm_status is not None else None,
            details={"error_code": body.get("error_code")} if body.get("error_code") else None,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise self._error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteCallError(f"Invalid JSON from {path}") from exc

    def _function_id(self, name: str) -> str:
        return f"{self._contract_address}::{MODULE_NAME}::{name}"

    async def _view(self, function: str, arguments: List[Any]) -> List[Any]:
        result = await self._request(
            "POST",
            "/v1/view",
            json={
                "function": self._function_id(function),
                "type_arguments": [],
                "arguments": arguments,
            },
        )
        if not isinstance(result, list) or not result:
            raise RemoteCallError(f"Unexpected view result from {function}: {result!r}")
        return result

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def exists(self, upi_id: str) -> bool:
        result = await self._view("upi_exists", [upi_id])
        return bool(result[0])

    async def stats(self) -> RegistryStats:
        result = await self._view("get_registry_stats", [])
        if len(result) < 2:
            raise RemoteCallError(f"Unexpected registry stats: {result!r}")
        return RegistryStats(
            merchant_count=int(result[0]),
            identifier_count=int(result[1]),
        )

    async def owner_of(self, upi_id: str) -> Optional[str]:
        # get_merchant_by_upi aborts for unknown IDs
        if not await self.exists(upi_id):
            return None
        result = await self._view("get_merchant_by_upi", [upi_id])
        return str(result[0])

    async def identifiers_of(self, merchant_address: str) -> List[str]:
        result = await self._view("get_merchant_upis", [merchant_address])
        return [str(upi_id) for upi_id in result[0]]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def register(self, upi_id: str) -> str:
        return await self._submit("register_upi", [upi_id])

    async def remove(self, upi_id: str) -> str:
        return await self._submit("remove_upi", [upi_id])

    async def register_merchant(self, business_name: str, contact_info: str) -> str:
        return await self._submit("register_merchant", [business_name, contact_info])

    async def _build_transaction(
        self,
        account: KeyPair,
        function: str,
        arguments: List[Any],
    ) -> dict[str, Any]:
        account_info = await self._request("GET", f"/v1/accounts/{account.address}")
        gas = await self._request("GET", "/v1/estimate_gas_price")
        expiration = int(time.time()) + max(60, int(self._wait_timeout * 2))
        return {
            "sender": account.address,
            "sequence_number": str(account_info["sequence_number"]),
            "max_gas_amount": str(self._max_gas_amount),
            "gas_unit_price": str(gas["gas_estimate"]),
            "expiration_timestamp_secs": str(expiration),
            "payload": {
                "type": "entry_function_payload",
                "function": self._function_id(function),
                "type_arguments": [],
                "arguments": arguments,
            },
        }

    async def _submit(self, function: str, arguments: List[Any]) -> str:
        """Sign, submit and wait for an entry-function transaction."""
        if self._account is None:
            raise OperatorAccountMissingError()
        account = self._account

        try:
            txn = await self._build_transaction(account, function, arguments)
        except (KeyError, TypeError) as exc:
            raise RemoteCallError(f"Unexpected node response building {function}: {exc}") from exc

        signing_message = await self._request(
            "POST", "/v1/transactions/encode_submission", json=txn
        )
        if not isinstance(signing_message, str):
            raise RemoteCallError(f"Unexpected signing message: {signing_message!r}")
        signature = account.sign(bytes.fromhex(signing_message.removeprefix("0x")))

        signed = dict(txn)
        signed["signature"] = {
            "type": "ed25519_signature",
            "public_key": account.public_key,
            "signature": signature,
        }

        client = await self._get_client()
        try:
            response = await client.post("/v1/transactions", json=signed)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise RemoteCallError(f"Submit {function} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            # The request may have reached the node
            raise AmbiguousCommitError(
                f"Submit {function} outcome unknown: {exc}"
            ) from exc
        if response.status_code >= 400:
            raise self._error_from_response(response)

        try:
            tx_hash = response.json()["hash"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AmbiguousCommitError(f"Submit {function} returned no hash") from exc
        logger.info("Submitted %s: %s", function, tx_hash)
        await self._wait_for_transaction(tx_hash)
        return tx_hash

    async def _wait_for_transaction(self, tx_hash: str) -> dict[str, Any]:
        """Poll until committed; raise on VM failure or timeout."""
        client = await self._get_client()
        deadline = time.monotonic() + self._wait_timeout

        while True:
            try:
                response = await client.get(f"/v1/transactions/by_hash/{tx_hash}")
            except httpx.HTTPError as exc:
                raise AmbiguousCommitError(
                    f"Lost track of transaction {tx_hash}: {exc}", tx_hash=tx_hash
                ) from exc

            if response.status_code == 200:
                try:
                    txn = response.json()
                except ValueError as exc:
                    raise AmbiguousCommitError(
                        f"Invalid JSON while polling {tx_hash}", tx_hash=tx_hash
                    ) from exc
                if not isinstance(txn, dict):
                    raise AmbiguousCommitError(
                        f"Unexpected transaction payload for {tx_hash}", tx_hash=tx_hash
                    )
                if txn.get("type") != "pending_transaction":
                    return self._check_committed(tx_hash, txn)
            elif response.status_code != 404:
                raise AmbiguousCommitError(
                    f"Unexpected status {response.status_code} for {tx_hash}",
                    tx_hash=tx_hash,
                )

            if time.monotonic() >= deadline:
                raise AmbiguousCommitError(
                    f"Transaction {tx_hash} not committed after {self._wait_timeout}s",
                    tx_hash=tx_hash,
                )
            await asyncio.sleep(self._poll_interval)

    @staticmethod
    def _check_committed(tx_hash: str, txn: dict[str, Any]) -> dict[str, Any]:
        if txn.get("success"):
            logger.debug("Transaction %s committed, gas used %s", tx_hash, txn.get("gas_used"))
            return txn

        vm_status = str(txn.get("vm_status", "unknown"))
        if any(marker in vm_status.upper() for marker in _DUPLICATE_MARKERS):
            raise DuplicateRegistrationError(
                f"Registry rejected transaction: {vm_status}",
                tx_hash=tx_hash,
                vm_status=vm_status,
            )
        raise RemoteCallError(
            f"Transaction failed: {vm_status}",
            tx_hash=tx_hash,
            vm_status=vm_status,
        )
