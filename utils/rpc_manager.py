"""
RPC connection manager
One AsyncWeb3 instance per chain over a shared aiohttp session
"""
from typing import Optional

import aiohttp
from web3 import AsyncWeb3, AsyncHTTPProvider

from config.chains import ChainId, get_chain
from config.settings import REQUEST_TIMEOUT
from utils.logger import get_logger

logger = get_logger(__name__)

# Global session for all node requests
_GLOBAL_SESSION: Optional[aiohttp.ClientSession] = None


async def get_global_session() -> aiohttp.ClientSession:
    """Get or create a shared session with DNS caching"""
    global _GLOBAL_SESSION
    if _GLOBAL_SESSION is None or _GLOBAL_SESSION.closed:
        connector = aiohttp.TCPConnector(
            use_dns_cache=True,
            ttl_dns_cache=600,
            limit=100,
            limit_per_host=50,
            enable_cleanup_closed=True
        )
        _GLOBAL_SESSION = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT * 2, connect=10)
        )
    return _GLOBAL_SESSION


class RPCManager:
    """
    Creates and caches Web3 connections
    """

    def __init__(self):
        self._web3_instances: dict[str, AsyncWeb3] = {}

    async def get_web3_for_url(self, url: str) -> AsyncWeb3:
        """Get or create a Web3 instance for a specific endpoint"""
        if url not in self._web3_instances:
            session = await get_global_session()
            provider = AsyncHTTPProvider(
                url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)}
            )
            # Share one connection pool across providers
            await provider.cache_async_session(session)
            self._web3_instances[url] = AsyncWeb3(provider)
            logger.debug(f"Connected Web3 provider for {url}")
        return self._web3_instances[url]

    async def get_web3(self, chain_id: ChainId) -> AsyncWeb3:
        """Get a Web3 instance for the first configured endpoint of a chain"""
        return await self.get_web3_for_url(get_chain(chain_id).get_rpc())

    async def close(self):
        """Close all Web3 providers and the shared session"""
        for url, w3 in self._web3_instances.items():
            try:
                if hasattr(w3.provider, "disconnect"):
                    await w3.provider.disconnect()
            except Exception as e:
                logger.debug(f"Failed to disconnect provider {url}: {e}")
        self._web3_instances.clear()

        global _GLOBAL_SESSION
        if _GLOBAL_SESSION and not _GLOBAL_SESSION.closed:
            await _GLOBAL_SESSION.close()
            _GLOBAL_SESSION = None


# Global RPC manager instance
rpc_manager = RPCManager()
