"""
Deployed contract addresses for the Kuest CTF exchange.

Tables are built once at import time and wrapped in MappingProxyType;
lookups go through the functions below and never mutate them.

Networks: Polygon Mainnet (137), Polygon Amoy testnet (80002)
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from eth_utils import keccak, to_bytes, to_checksum_address

from .config import POLYGON, AMOY


@dataclass(frozen=True)
class ContractConfig:
    """Contracts involved in trading one market family."""
    exchange: str
    collateral: str
    conditional_tokens: str
    # Only present for neg-risk markets; must be approved for token transfers
    neg_risk_adapter: Optional[str] = None


@dataclass(frozen=True)
class WalletContractConfig:
    """Factories used to deploy smart-contract wallets."""
    safe_factory: str
    # Proxy wallets (Magic/email users) are not deployed on every chain
    proxy_factory: Optional[str] = None


EXCHANGE_ADDRESS = "0xE79717fE8456C620cFde6156b6AeAd79C4875Ca2"
NEG_RISK_EXCHANGE_ADDRESS = "0xccBe425A0Aa24DCEf81f2e6edE3568a1683e7cbe"
NEG_RISK_ADAPTER_ADDRESS = "0xc26DACF369DC1eA12421B9104031Cb5a2F8C9215"
CONDITIONAL_TOKENS_ADDRESS = "0x9432978d0f8A0E1a5317DD545B4a9ad32da8AD59"

USDC_POLYGON = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
USDC_AMOY = "0x29604FdE966E3AEe42d9b5451BD9912863b3B904"

PROXY_FACTORY_ADDRESS = "0xFe30Ff32E8fcB617E4665c5c94749ECc0808A6C9"
SAFE_FACTORY_ADDRESS = "0xA28927f4a23F52d0b7253c5E3d09a1fDb22977C4"

PROXY_INIT_CODE_HASH = "0x1f566e4d6fc92316ca3a8303965679f5ca265da52fec11f520dfd90ee773226f"
SAFE_INIT_CODE_HASH = "0x61e47bf36784271f639db33bb53fdc7fc843765357f63277759b9bb2ffdadaff"


CONFIG: Mapping[int, ContractConfig] = MappingProxyType({
    POLYGON: ContractConfig(
        exchange=EXCHANGE_ADDRESS,
        collateral=USDC_POLYGON,
        conditional_tokens=CONDITIONAL_TOKENS_ADDRESS,
    ),
    AMOY: ContractConfig(
        exchange=EXCHANGE_ADDRESS,
        collateral=USDC_AMOY,
        conditional_tokens=CONDITIONAL_TOKENS_ADDRESS,
    ),
})

NEG_RISK_CONFIG: Mapping[int, ContractConfig] = MappingProxyType({
    POLYGON: ContractConfig(
        exchange=NEG_RISK_EXCHANGE_ADDRESS,
        collateral=USDC_POLYGON,
        conditional_tokens=CONDITIONAL_TOKENS_ADDRESS,
        neg_risk_adapter=NEG_RISK_ADAPTER_ADDRESS,
    ),
    AMOY: ContractConfig(
        exchange=NEG_RISK_EXCHANGE_ADDRESS,
        collateral=USDC_AMOY,
        conditional_tokens=CONDITIONAL_TOKENS_ADDRESS,
        neg_risk_adapter=NEG_RISK_ADAPTER_ADDRESS,
    ),
})

WALLET_CONFIG: Mapping[int, WalletContractConfig] = MappingProxyType({
    POLYGON: WalletContractConfig(
        safe_factory=SAFE_FACTORY_ADDRESS,
        proxy_factory=PROXY_FACTORY_ADDRESS,
    ),
    AMOY: WalletContractConfig(
        safe_factory=SAFE_FACTORY_ADDRESS,
        proxy_factory=PROXY_FACTORY_ADDRESS,
    ),
})


def contract_config(chain_id: int, neg_risk: bool = False) -> Optional[ContractConfig]:
    """
    Get contract configuration for a chain.

    Args:
        chain_id: Chain ID
        neg_risk: Use the neg-risk exchange family

    Returns:
        ContractConfig, or None for unsupported chains
    """
    table = NEG_RISK_CONFIG if neg_risk else CONFIG
    return table.get(chain_id)


def wallet_contract_config(chain_id: int) -> Optional[WalletContractConfig]:
    """Get wallet factory configuration for a chain (None if unsupported)."""
    return WALLET_CONFIG.get(chain_id)


def is_exchange_contract(address: str) -> bool:
    """Check whether address is one of the known exchange contracts."""
    known = {cfg.exchange.lower() for cfg in (*CONFIG.values(), *NEG_RISK_CONFIG.values())}
    return address.lower() in known


def _create2_address(factory: str, salt: bytes, init_code_hash: str) -> str:
    digest = keccak(
        b"\xff" + to_bytes(hexstr=factory) + salt + to_bytes(hexstr=init_code_hash)
    )
    return to_checksum_address(digest[12:])


def derive_proxy_wallet(eoa_address: str, chain_id: int) -> Optional[str]:
    """
    Derive the proxy wallet address deployed for an EOA (CREATE2).

    The salt is keccak256 of the packed 20-byte address.

    Args:
        eoa_address: Externally owned account address
        chain_id: Chain ID

    Returns:
        Checksummed proxy wallet address, or None if the chain has no
        proxy factory
    """
    config = wallet_contract_config(chain_id)
    if config is None or config.proxy_factory is None:
        return None

    salt = keccak(to_bytes(hexstr=eoa_address))
    return _create2_address(config.proxy_factory, salt, PROXY_INIT_CODE_HASH)


def derive_safe_wallet(eoa_address: str, chain_id: int) -> Optional[str]:
    """
    Derive the 1-of-1 Gnosis Safe address deployed for an EOA (CREATE2).

    The salt is keccak256 of the ABI-encoded address (left-padded to 32 bytes).

    Args:
        eoa_address: Externally owned account address
        chain_id: Chain ID

    Returns:
        Checksummed Safe address, or None for unsupported chains
    """
    config = wallet_contract_config(chain_id)
    if config is None:
        return None

    salt = keccak(to_bytes(hexstr=eoa_address).rjust(32, b"\x00"))
    return _create2_address(config.safe_factory, salt, SAFE_INIT_CODE_HASH)
