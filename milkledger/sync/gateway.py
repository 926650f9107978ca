"""Sync gateway mirroring the ledger to a remote key/value blob store.

Pull replaces the local ledger with the remote copy; push overwrites the
remote copy with the local ledger. There is no merge: the last writer wins.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx

from ..config import DEFAULT_URL_TEMPLATE
from ..errors import RemoteUnavailable, ValidationError
from ..ledger import DeliveryLedger, LedgerEntry

logger = logging.getLogger(__name__)

ACCESS_KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_access_key(access_key: str | None) -> bool:
    """Whether the key looks like a version-4 UUID."""
    return bool(access_key) and ACCESS_KEY_PATTERN.match(access_key) is not None


def validate_access_key(access_key: str | None) -> str:
    """Return the key unchanged, raising ValidationError if it is malformed."""
    if not is_valid_access_key(access_key):
        raise ValidationError(f"Access key must be a version-4 UUID, got {access_key!r}")
    return access_key


class SyncState(Enum):
    """State of the gateway."""

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    UNAVAILABLE = "unavailable"  # Remote unreachable or payload unusable


@dataclass
class SyncResult:
    """Result of a pull or push."""

    state: SyncState
    entries: int = 0
    error: str | None = None
    timestamp: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.state == SyncState.SYNCED

    def raise_for_state(self) -> None:
        """Raise RemoteUnavailable unless the operation succeeded."""
        if not self.ok:
            raise RemoteUnavailable(self.error or "Remote store unavailable")


class SyncGateway:
    """Pulls and pushes the ledger as a single JSON blob.

    Every failure (no key, network error, bad status, malformed payload) is
    reported as ``SyncState.UNAVAILABLE``. Nothing is retried; callers
    trigger pull/push again when they want another attempt.
    """

    def __init__(
        self,
        ledger: DeliveryLedger,
        access_key: str | None = None,
        url_template: str = DEFAULT_URL_TEMPLATE,
        basket: str = "milk",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the gateway.

        Args:
            ledger: Ledger to replace on pull and read on push.
            access_key: Version-4 UUID identifying the remote blob.
            url_template: Blob URL with ``{key}`` and ``{basket}`` placeholders.
            basket: Name of the blob under the key.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used to stub the remote).
        """
        self.ledger = ledger
        self.access_key = access_key
        self.url_template = url_template
        self.basket = basket
        self.timeout = timeout
        self._transport = transport
        self._state = SyncState.IDLE
        self._last_sync: datetime | None = None
        self._last_error: str | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_sync(self) -> datetime | None:
        """Get timestamp of last successful sync."""
        return self._last_sync

    @property
    def url(self) -> str:
        return self.url_template.format(key=self.access_key, basket=self.basket)

    def set_access_key(self, access_key: str) -> None:
        """Set or update the access key.

        Raises:
            ValidationError: If the key is not a version-4 UUID.
        """
        self.access_key = validate_access_key(access_key)
        self._state = SyncState.IDLE
        logger.info("Access key updated")

    async def _request(self, method: str, json_data: Any = None) -> tuple[Any, str | None]:
        """Make a single HTTP request to the blob URL.

        Returns:
            Tuple of (response_data, error_message). GET responses are
            decoded as JSON; POST responses are returned as text.
        """
        if not self.access_key:
            return None, "No access key configured"
        if not is_valid_access_key(self.access_key):
            return None, "Access key is not a version-4 UUID"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                if method == "GET":
                    response = await client.get(self.url)
                elif method == "POST":
                    response = await client.post(self.url, json=json_data)
                else:
                    return None, f"Unsupported method: {method}"

                if response.status_code != 200:
                    return None, f"HTTP {response.status_code}: {response.text}"
                if method == "GET":
                    return response.json(), None
                return response.text, None

        except httpx.ConnectError as e:
            logger.warning(f"Connection to remote store failed: {e}")
            return None, f"Connection failed: {e}"
        except httpx.TimeoutException:
            logger.warning("Request to remote store timed out")
            return None, "Request timed out"
        except httpx.HTTPError as e:
            logger.warning(f"Remote store request error: {e}")
            return None, str(e)
        except ValueError as e:
            # response.json() on a non-JSON body
            return None, f"Malformed response: {e}"

    def _unavailable(self, error: str) -> SyncResult:
        self._state = SyncState.UNAVAILABLE
        self._last_error = error
        logger.warning(f"Remote store unavailable: {error}")
        return SyncResult(state=SyncState.UNAVAILABLE, error=error)

    def _synced(self, entries: int) -> SyncResult:
        self._state = SyncState.SYNCED
        self._last_error = None
        self._last_sync = datetime.now()
        return SyncResult(
            state=SyncState.SYNCED,
            entries=entries,
            timestamp=self._last_sync,
        )

    @staticmethod
    def _parse_payload(data: Any) -> list[LedgerEntry]:
        if not isinstance(data, dict):
            raise ValidationError("Remote payload is not an object")
        records = data.get("data")
        if not isinstance(records, list) or not records:
            raise ValidationError("Remote ledger is empty")
        return [LedgerEntry.from_dict(item) for item in records]

    async def pull(self, window: tuple[date, date] | None = None) -> SyncResult:
        """Replace the local ledger with the remote copy.

        Args:
            window: Optional inclusive (start, end) range; remote entries
                outside it are not kept.

        Returns:
            SyncResult. On failure the local ledger is left untouched.
        """
        self._state = SyncState.SYNCING
        data, error = await self._request("GET")
        if error:
            return self._unavailable(error)

        try:
            entries = self._parse_payload(data)
        except ValidationError as e:
            return self._unavailable(f"Malformed remote payload: {e}")

        if window is not None:
            start, end = window
            entries = [entry for entry in entries if start <= entry.day <= end]

        count = self.ledger.replace_all(sorted(entries, key=lambda e: e.day))
        logger.info(f"Pulled {count} ledger entries from remote store")
        return self._synced(count)

    async def push(self, ledger: DeliveryLedger | None = None) -> SyncResult:
        """Overwrite the remote copy with the full ledger."""
        if ledger is None:
            ledger = self.ledger
        entries = list(ledger.list_entries())
        payload = {"data": [entry.to_dict() for entry in entries]}

        self._state = SyncState.SYNCING
        _, error = await self._request("POST", payload)
        if error:
            return self._unavailable(error)

        logger.info(f"Pushed {len(entries)} ledger entries to remote store")
        return self._synced(len(entries))

    def get_sync_status(self) -> dict[str, Any]:
        """Get current sync status.

        Returns:
            Dictionary with sync state details.
        """
        return {
            "state": self._state.value,
            "configured": is_valid_access_key(self.access_key),
            "basket": self.basket,
            "last_sync": self._last_sync.isoformat() if self._last_sync else None,
            "last_error": self._last_error,
            "entries": len(self.ledger),
        }
