"""
Token metadata registry

Metadata is fetched once per token with ft_metadata and cached for the
whole process. If the contract cannot be read, the static registry and
then a generic fallback are used so quoting never blocks on metadata.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .reader import RemoteStateReader

from ..config import config as global_config, ContractsConfig
from ..errors import ReadError
from ..types import TokenMetadata, get_static_token, fallback_token
from ..types.tokens import NEAR

logger = logging.getLogger(__name__)

# Process-wide metadata cache (display id -> metadata)
_METADATA_CACHE: Dict[str, TokenMetadata] = {}


def clear_metadata_cache():
    """Drop all cached metadata"""
    _METADATA_CACHE.clear()


class TokenRegistry:
    """
    Resolves token metadata and display/contract ids

    Usage:
        tokens = TokenRegistry(reader)
        near = tokens.native()
        vf = await tokens.get("veganfriends.tkn.near")
    """

    def __init__(
        self,
        reader: "RemoteStateReader",
        contracts: Optional[ContractsConfig] = None,
        cache: Optional[Dict[str, TokenMetadata]] = None,
    ):
        self._reader = reader
        self._contracts = contracts or global_config.contracts
        self._cache = _METADATA_CACHE if cache is None else cache

    def native(self) -> TokenMetadata:
        """Native currency metadata, backed by the wrapped-native contract"""
        return dataclasses.replace(
            NEAR,
            id=self._contracts.native_token_id,
            contract_id=self._contracts.wrap_contract_id,
        )

    def is_native(self, token_id: str) -> bool:
        return token_id == self._contracts.native_token_id

    def contract_id(self, token_id: str) -> str:
        """Contract id for a display id (native sentinel -> wrapped native)"""
        if self.is_native(token_id):
            return self._contracts.wrap_contract_id
        return token_id

    async def get(self, token_id: str, refresh: bool = False) -> TokenMetadata:
        """
        Get metadata for a token

        Args:
            token_id: Display id
            refresh: Re-fetch even if cached

        Returns:
            Contract metadata, else static metadata, else generic fallback
        """
        if self.is_native(token_id):
            return self.native()
        if not refresh and token_id in self._cache:
            return self._cache[token_id]

        try:
            metadata = await self._reader.get_token_metadata(token_id)
        except ReadError as e:
            metadata = get_static_token(token_id)
            if metadata is not None:
                logger.warning(f"Using static metadata for {token_id}: {e}")
            else:
                logger.warning(f"Using fallback metadata for {token_id}: {e}")
                metadata = fallback_token(token_id)
            # Unconfirmed metadata is not cached so the next call retries
            return metadata

        self._cache[token_id] = metadata
        return metadata

    async def for_contract(self, contract_id: str) -> TokenMetadata:
        """Display metadata for a contract id (wrapped native shows as native)"""
        if contract_id == self._contracts.wrap_contract_id:
            return self.native()
        return await self.get(contract_id)

    async def get_many(self, token_ids: Iterable[str]) -> List[TokenMetadata]:
        """Fetch several tokens concurrently, preserving order"""
        return list(await asyncio.gather(*(self.get(token_id) for token_id in token_ids)))
