"""Network selection and node endpoint configuration.

A :class:`NetworkConfig` is passed explicitly to the chain client rather
than read from module globals, so tests and private deployments can point
the wallet at any node.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Annotated, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Network(str, Enum):
    """Polymesh networks and their SS58 address formats."""

    TESTNET = "testnet"
    MAINNET = "mainnet"

    @property
    def ss58_format(self) -> int:
        # 42 is the generic Substrate format; 12 is registered to Polymesh.
        return 12 if self is Network.MAINNET else 42

    @classmethod
    def from_flag(cls, mainnet: bool) -> "Network":
        return cls.MAINNET if mainnet else cls.TESTNET


DEFAULT_URLS: dict[Network, str] = {
    Network.MAINNET: "https://mainnet-rpc.polymesh.network",
    Network.TESTNET: "https://testnet-rpc.polymesh.live",
}

_URL_ENV = {
    Network.MAINNET: "POLYMESH_MAINNET_URL",
    Network.TESTNET: "POLYMESH_TESTNET_URL",
}
_TIMEOUT_ENV = "POLYMESH_RPC_TIMEOUT"


class NetworkConfig(BaseModel):
    """Everything the chain client needs to reach a node."""

    model_config = ConfigDict(frozen=True)

    network: Network = Network.TESTNET
    url: str = DEFAULT_URLS[Network.TESTNET]
    timeout: Annotated[float, Field(gt=0, description="Per-request timeout in seconds")] = 30.0
    inclusion_timeout: Annotated[float, Field(gt=0)] = 120.0
    poll_interval: Annotated[float, Field(gt=0)] = 2.0

    @field_validator("url")
    @classmethod
    def _http_endpoint(cls, v: str) -> str:
        # The client speaks JSON-RPC over HTTP; Substrate nodes serve the same
        # API on the websocket and HTTP schemes of one endpoint.
        if v.startswith("wss://"):
            v = "https://" + v[len("wss://") :]
        elif v.startswith("ws://"):
            v = "http://" + v[len("ws://") :]
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"unsupported endpoint scheme: {v}")
        return v.rstrip("/")

    @property
    def ss58_format(self) -> int:
        return self.network.ss58_format

    @classmethod
    def for_network(
        cls,
        network: Network,
        env: Mapping[str, str] | None = None,
    ) -> "NetworkConfig":
        """Build the configuration for *network*, honouring env overrides.

        ``POLYMESH_MAINNET_URL`` / ``POLYMESH_TESTNET_URL`` replace the
        default endpoint, ``POLYMESH_RPC_TIMEOUT`` the request timeout.
        """
        env = os.environ if env is None else env
        fields: dict = {
            "network": network,
            "url": env.get(_URL_ENV[network]) or DEFAULT_URLS[network],
        }
        if env.get(_TIMEOUT_ENV):
            fields["timeout"] = float(env[_TIMEOUT_ENV])
        return cls(**fields)
