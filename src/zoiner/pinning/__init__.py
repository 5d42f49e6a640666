from .adapters import PinningClient, PinataClient, create_pinning_client, strip_ipfs_scheme

__all__ = ["PinningClient", "PinataClient", "create_pinning_client", "strip_ipfs_scheme"]
