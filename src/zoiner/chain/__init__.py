from .adapters import ChainClient, CoinCreationResult, ZoraChainClient, create_chain_client, metadata_fetch_url

__all__ = ["ChainClient", "CoinCreationResult", "ZoraChainClient", "create_chain_client", "metadata_fetch_url"]
