"""RPC providers able to send read-only calls to a contract."""

import itertools
import logging
from typing import Any, Protocol

import httpx
from ape import networks
from ape.exceptions import VirtualMachineError
from eth_utils import to_bytes, to_hex

from farm_tracker.exceptions import CallReverted, TransportError
from farm_tracker.rpc.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

# JSON-RPC error code used by geth-compatible nodes for reverted calls
REVERT_ERROR_CODE = 3


class CallTransport(Protocol):
    """
    Anything that can execute an ``eth_call``.

    Implementations raise ``CallReverted`` when the contract reverted and
    ``TransportError`` for every other failure.
    """

    def eth_call(self, to: str, data: bytes) -> bytes:
        """Execute a read call against ``to`` and return the raw return data."""
        ...


def _is_revert(error: dict[str, Any]) -> bool:
    message = str(error.get("message", "")).lower()
    return error.get("code") == REVERT_ERROR_CODE or "revert" in message


class HttpRPCProvider:
    """
    JSON-RPC provider talking to a single HTTP endpoint.

    Parameters
    ----------
    rpc_url : str
        RPC endpoint URL
    retry_config : RetryConfig | None
        Retry configuration for transport failures
    timeout : float
        Request timeout in seconds
    client : httpx.Client | None
        Preconfigured client (e.g., with a mock transport in tests)

    """

    def __init__(
        self,
        rpc_url: str,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig(
            max_retries=3,
            base_delay=1.0,
            max_delay=30.0,
            exponential_base=2.0,
        )
        self._client = client
        self._request_ids = itertools.count(1)

    def connect(self) -> None:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def make_request(self, method: str, params: list[Any]) -> Any:
        """
        Make an RPC request with retry logic and exponential backoff.

        Parameters
        ----------
        method : str
            RPC method name (e.g., 'eth_call')
        params : list[Any]
            Method parameters

        Returns
        -------
        Any
            The ``result`` member of the response

        Raises
        ------
        CallReverted
            If the node reports a reverted call (never retried)
        TransportError
            If all retry attempts fail

        """
        if self._client is None:
            error_msg = "Provider not connected. Call connect() first."
            raise RuntimeError(error_msg)

        send = with_retry(
            self.retry_config,
            retry_on=(TransportError,),
            give_up_on=(CallReverted,),
        )(self._send)
        return send(method, params)

    def _send(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._request_ids),
        }

        try:
            response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            msg = f"RPC request timeout: {e}"
            raise TransportError(msg) from e
        except httpx.HTTPStatusError as e:
            msg = f"RPC HTTP error {e.response.status_code}: {e}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            msg = f"RPC request failed: {e}"
            raise TransportError(msg) from e
        except ValueError as e:
            msg = f"RPC response is not JSON: {e}"
            raise TransportError(msg) from e

        error = body.get("error")
        if error:
            if _is_revert(error):
                raise CallReverted(error.get("message", "execution reverted"))
            msg = f"RPC error {error.get('code')}: {error.get('message')}"
            raise TransportError(msg)

        return body.get("result")

    def eth_call(self, to: str, data: bytes) -> bytes:
        result = self.make_request("eth_call", [{"to": to, "data": to_hex(data)}, "latest"])
        return to_bytes(hexstr=result or "0x")

    def __enter__(self) -> "HttpRPCProvider":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.disconnect()


class ApeRPCProvider:
    """
    RPC provider using Ape's network management system.

    Parameters
    ----------
    network_choice : str
        Ape network choice (e.g., 'bsc:mainnet') or an RPC URL
    retry_config : RetryConfig | None
        Retry configuration for transport failures

    """

    def __init__(
        self,
        network_choice: str,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.network_choice = network_choice
        self._network_context = None
        self._provider = None
        self.retry_config = retry_config or RetryConfig()

    def connect(self) -> None:
        """Connect to the network using Ape's network management."""
        try:
            self._network_context = networks.parse_network_choice(self.network_choice)
            self._network_context.__enter__()
            self._provider = networks.provider
        except Exception as e:
            error_msg = f"Failed to connect to {self.network_choice}: {e}"
            raise TransportError(error_msg) from e

    def disconnect(self) -> None:
        """Disconnect from the network."""
        if self._network_context:
            try:
                self._network_context.__exit__(None, None, None)
            except Exception as e:
                logger.debug("Error during network context cleanup: %s", e)
            self._network_context = None
        self._provider = None

    def make_request(self, method: str, params: list[Any]) -> Any:
        """
        Make an RPC request through the connected Ape provider.

        Raises
        ------
        CallReverted
            If the call reverted (never retried)
        TransportError
            If all retry attempts fail

        """
        if not self._provider:
            error_msg = "Provider not connected. Call connect() first."
            raise RuntimeError(error_msg)

        send = with_retry(
            self.retry_config,
            retry_on=(TransportError,),
            give_up_on=(CallReverted,),
        )(self._send)
        return send(method, params)

    def _send(self, method: str, params: list[Any]) -> Any:
        try:
            return self._provider.make_request(method, params)
        except VirtualMachineError as e:
            raise CallReverted(str(e)) from e
        except Exception as e:
            msg = f"RPC call {method} failed: {e}"
            raise TransportError(msg) from e

    def eth_call(self, to: str, data: bytes) -> bytes:
        result = self.make_request("eth_call", [{"to": to, "data": to_hex(data)}, "latest"])
        if isinstance(result, str):
            return to_bytes(hexstr=result)
        return bytes(result or b"")

    def __enter__(self) -> "ApeRPCProvider":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.disconnect()
