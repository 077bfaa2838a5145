"""
Chains the client can talk to: RPC endpoints and aggregator deployments
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()

INFURA_KEY = os.getenv("INFURA_API_KEY")

# Overrides the aggregator address of whichever chain is selected
MULTICALL_ADDRESS_OVERRIDE = os.getenv("MULTICALL_ADDRESS")


class ChainId(Enum):
    """Blockchain chain IDs"""
    ETHEREUM = 1
    BSC = 56
    POLYGON = 137
    ARBITRUM = 42161
    OPTIMISM = 10
    BASE = 8453


def _infura(network: str) -> list[str]:
    """Infura endpoint first when a key is configured"""
    return [f"https://{network}.infura.io/v3/{INFURA_KEY}"] if INFURA_KEY else []


@dataclass
class ChainConfig:
    """Endpoints and aggregate((address,bytes)[],bool) deployment of one chain"""
    chain_id: ChainId
    name: str
    rpc_endpoints: list[str] = field(default_factory=list)
    explorer_url: str = ""
    multicall_address: Optional[str] = None

    def get_rpc(self, index: int = 0) -> str:
        if not self.rpc_endpoints:
            raise KeyError(f"No RPC endpoint configured for {self.name}")
        return self.rpc_endpoints[index % len(self.rpc_endpoints)]

    def get_multicall_address(self) -> Optional[str]:
        return MULTICALL_ADDRESS_OVERRIDE or self.multicall_address

    def address_url(self, address: str) -> str:
        """Block explorer page of a contract"""
        return f"{self.explorer_url}/address/{address}"


CHAINS: dict[ChainId, ChainConfig] = {
    config.chain_id: config
    for config in (
        ChainConfig(
            ChainId.ETHEREUM, "Ethereum",
            _infura("mainnet") + ["https://eth.llamarpc.com", "https://ethereum.publicnode.com"],
            "https://etherscan.io",
            multicall_address="0x5Eb3fa2DFECdDe21C950813C665E9364fa609bD2",
        ),
        ChainConfig(
            ChainId.BSC, "BSC",
            ["https://bsc-dataseed.binance.org", "https://bsc.publicnode.com"],
            "https://bscscan.com",
        ),
        ChainConfig(
            ChainId.POLYGON, "Polygon",
            _infura("polygon-mainnet") + ["https://polygon-rpc.com"],
            "https://polygonscan.com",
        ),
        ChainConfig(
            ChainId.ARBITRUM, "Arbitrum",
            _infura("arbitrum-mainnet") + ["https://arb1.arbitrum.io/rpc"],
            "https://arbiscan.io",
        ),
        ChainConfig(
            ChainId.OPTIMISM, "Optimism",
            _infura("optimism-mainnet") + ["https://mainnet.optimism.io"],
            "https://optimistic.etherscan.io",
        ),
        ChainConfig(
            ChainId.BASE, "Base",
            _infura("base-mainnet") + ["https://mainnet.base.org"],
            "https://basescan.org",
        ),
    )
}


def get_chain(chain_id: ChainId) -> ChainConfig:
    """Get chain configuration by ID"""
    return CHAINS[chain_id]


def find_chain(name: str) -> ChainConfig:
    """Look up a chain by enum name or display name, case insensitive"""
    for config in CHAINS.values():
        if name.lower() in (config.chain_id.name.lower(), config.name.lower()):
            return config
    raise KeyError(f"Unknown chain: {name}")
