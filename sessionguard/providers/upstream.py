"""HTTP client for the upstream trading-session manager."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
import structlog

from ..config import settings
from ..core.errors import (
    BackendUnavailableError,
    MalformedInputError,
    PreconditionFailedError,
    SessionGuardError,
    SessionNotFoundError,
    SweepConflictError,
    TransferFailedError,
    TransferRejectedError,
    UnauthorizedError,
)
from ..core.recovery.models import (
    EphemeralWallet,
    WalletSet,
    validate_address,
    validate_session_id,
)
from ..core.session.models import Session, to_balance

logger = structlog.stdlib.get_logger(__name__)

_PRECONDITION_STATUSES = {400, 409, 412, 422}


class UpstreamClient:
    """
    Session-control, wallet ledger, transfer and balance API of the
    session manager.

    Implements the SessionControl, WalletLedger, TransferBackend and
    BalanceSource protocols. Every call maps HTTP failures onto the
    sessionguard error taxonomy:

    - 401/403 -> UnauthorizedError
    - 404 -> SessionNotFoundError
    - 400/409/412/422 -> PreconditionFailedError (on a sweep: 409 -> SweepConflictError,
      the rest -> TransferRejectedError, which is not retried)
    - 5xx, timeouts, connection errors -> BackendUnavailableError
    """

    name = "session-manager"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.upstream_base_url).rstrip("/")
        self.api_key = settings.upstream_api_key if api_key is None else api_key
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            headers=headers,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        session_id: Optional[str] = None,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        sweep: bool = False,
    ) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(
                "Session manager timed out", details={"path": path}, retry_after=10.0
            ) from e
        except httpx.TransportError as e:
            raise BackendUnavailableError(
                f"Session manager unreachable: {e}", details={"path": path}, retry_after=5.0
            ) from e

        if response.is_success:
            try:
                payload = response.json()
            except ValueError as e:
                raise BackendUnavailableError(
                    "Unexpected response from session manager", details={"path": path}
                ) from e
            if not isinstance(payload, dict):
                raise BackendUnavailableError(
                    "Unexpected response from session manager", details={"path": path}
                )
            return payload

        raise self._status_error(response, session_id, sweep=sweep)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return str(error.get("message") or body.get("message") or response.reason_phrase)
            return str(error or body.get("message") or response.reason_phrase)
        return response.reason_phrase

    def _status_error(
        self, response: httpx.Response, session_id: Optional[str], sweep: bool = False
    ) -> SessionGuardError:
        status = response.status_code
        message = self._error_message(response)
        details = {"status": status}

        if status in (401, 403):
            return UnauthorizedError(message, details=details)
        if status == 404:
            return SessionNotFoundError(session_id or "")
        if sweep and status == 409:
            return SweepConflictError(message, details=details)
        if status in _PRECONDITION_STATUSES:
            if sweep:
                return TransferRejectedError(message, details=details)
            return PreconditionFailedError(message, details=details)
        if status == 429:
            return BackendUnavailableError(message, details=details, retry_after=60.0)
        return BackendUnavailableError(message, details=details)

    # ------------------------------------------------------------------
    # SessionControl
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session:
        validate_session_id(session_id)
        payload = await self._request("GET", f"/api/session/{session_id}", session_id)

        data = payload.get("session") or payload
        trading = payload.get("trading") or {}
        try:
            return Session.from_dict(
                {
                    "sessionId": data.get("sessionId", session_id),
                    "status": data["status"],
                    "balance": data.get("balance"),
                    "isPaused": trading.get("isPaused", data.get("isPaused", False)),
                }
            )
        except (KeyError, ValueError, MalformedInputError) as e:
            raise BackendUnavailableError(
                "Unexpected session payload from session manager",
                details={"sessionId": session_id},
            ) from e

    async def pause(self, session_id: str) -> None:
        await self._control(session_id, "pause")

    async def resume(self, session_id: str) -> None:
        await self._control(session_id, "resume")

    async def stop(self, session_id: str) -> None:
        await self._control(session_id, "stop")

    async def _control(self, session_id: str, action: str) -> None:
        validate_session_id(session_id)
        await self._request("POST", f"/api/session/{session_id}/{action}", session_id)
        logger.info("session_control_forwarded", session_id=session_id, action=action)

    # ------------------------------------------------------------------
    # WalletLedger
    # ------------------------------------------------------------------

    async def get_wallet_set(self, session_id: str) -> WalletSet:
        validate_session_id(session_id)
        payload = await self._request(
            "GET", f"/api/session/{session_id}/ephemeral-wallets", session_id
        )
        vault = payload.get("vaultAddress")
        if not vault:
            raise BackendUnavailableError(
                "Session manager returned no vault address", details={"sessionId": session_id}
            )
        wallets = [self._parse_wallet(w, session_id) for w in payload.get("wallets") or []]
        return WalletSet(vault_address=vault, wallets=wallets)

    async def get_wallet(self, session_id: str, address: str) -> Optional[EphemeralWallet]:
        validate_session_id(session_id)
        validate_address(address)
        try:
            payload = await self._request(
                "GET", f"/api/session/{session_id}/ephemeral-wallets/{address}", session_id
            )
        except SessionNotFoundError:
            return None
        return self._parse_wallet(payload.get("wallet") or payload, session_id)

    async def record_sweep_success(
        self, session_id: str, address: str, attempted_at: datetime
    ) -> None:
        await self._record_attempt(session_id, address, attempted_at, success=True)

    async def record_sweep_failure(
        self,
        session_id: str,
        address: str,
        error: str,
        attempted_at: datetime,
        balance: Optional[Decimal] = None,
    ) -> None:
        await self._record_attempt(
            session_id, address, attempted_at, success=False, error=error, balance=balance
        )

    async def _record_attempt(
        self,
        session_id: str,
        address: str,
        attempted_at: datetime,
        success: bool,
        error: Optional[str] = None,
        balance: Optional[Decimal] = None,
    ) -> None:
        body: Dict[str, Any] = {"success": success, "error": error, "attemptedAt": attempted_at.isoformat()}
        if balance is not None:
            body["balance"] = float(balance)
        await self._request(
            "POST",
            f"/api/session/{session_id}/ephemeral-wallets/{address}/sweep-attempts",
            session_id,
            json=body,
        )

    async def list_sessions_with_unswept_wallets(self, older_than: datetime) -> List[str]:
        payload = await self._request(
            "GET",
            "/api/ephemeral-wallets/stranded",
            params={"olderThan": older_than.isoformat()},
        )
        return [str(s) for s in payload.get("sessionIds") or []]

    @staticmethod
    def _parse_wallet(data: Dict[str, Any], session_id: str) -> EphemeralWallet:
        try:
            return EphemeralWallet.from_dict(data)
        except (KeyError, ValueError, MalformedInputError) as e:
            raise BackendUnavailableError(
                "Unexpected wallet payload from session manager",
                details={"sessionId": session_id, "address": data.get("address")},
            ) from e

    # ------------------------------------------------------------------
    # TransferBackend
    # ------------------------------------------------------------------

    async def transfer_to_vault(
        self, session_id: str, address: str, vault_address: str
    ) -> Optional[str]:
        payload = await self._request(
            "POST",
            f"/api/session/{session_id}/ephemeral-wallets/{address}/sweep",
            session_id,
            json={"vaultAddress": vault_address},
            sweep=True,
        )
        if payload.get("success") is False:
            raise TransferFailedError(str(payload.get("error") or "Sweep failed"))
        return payload.get("signature")

    # ------------------------------------------------------------------
    # BalanceSource
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> Decimal:
        validate_address(address)
        payload = await self._request("GET", f"/api/wallets/{address}/balance")
        try:
            return to_balance(payload.get("balance"))
        except MalformedInputError as e:
            raise BackendUnavailableError(
                "Unexpected balance payload from session manager", details={"address": address}
            ) from e

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self._request("GET", "/api/health")
        except SessionGuardError as e:
            return {"status": "unavailable", "reason": e.message}
        return {"status": "healthy"}


# Singleton instance
_upstream_client: Optional[UpstreamClient] = None


def get_upstream_client() -> UpstreamClient:
    """Get the singleton upstream client instance."""
    global _upstream_client
    if _upstream_client is None:
        _upstream_client = UpstreamClient()
    return _upstream_client
