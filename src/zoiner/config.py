from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import dotenv

from zoiner.errors import ConfigError

DEFAULT_IMAGE_URL = "https://i.postimg.cc/VkgLgc4Z/happybirthday.png"
DEFAULT_GATEWAY = "gateway.pinata.cloud"
DEFAULT_RPC_URL = "https://mainnet.base.org"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class Settings:
    neynar_api_key: Optional[str] = None
    signer_uuid: Optional[str] = None
    bot_fid: Optional[int] = None
    bot_name: str = "zoiner"
    pinata_jwt: Optional[str] = None
    gateway_url: str = DEFAULT_GATEWAY
    rpc_url: str = DEFAULT_RPC_URL
    wallet_private_key: Optional[str] = field(default=None, repr=False)
    dry_run: bool = False
    port: int = 3000
    api_endpoint: str = "http://localhost:3000"
    default_image_url: str = DEFAULT_IMAGE_URL

    def require_live(self) -> None:
        """Raise ConfigError if the service cannot run with these settings."""
        missing = [
            name
            for name, value in (
                ("NEYNAR_API_KEY", self.neynar_api_key),
                ("SIGNER_UUID", self.signer_uuid),
                ("BOT_FID", self.bot_fid),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"{', '.join(missing)} required")
        if not self.dry_run and not self.wallet_private_key:
            raise ConfigError("WALLET_PRIVATE_KEY is required unless DRY_RUN is set")

    def describe(self) -> dict:
        """Loggable view with credentials redacted."""
        return {
            "NEYNAR_API_KEY": "[PRESENT]" if self.neynar_api_key else "NOT SET",
            "SIGNER_UUID": "[PRESENT]" if self.signer_uuid else "NOT SET",
            "BOT_FID": self.bot_fid,
            "BOT_NAME": self.bot_name,
            "PINATA_JWT": "[PRESENT]" if self.pinata_jwt else "NOT SET",
            "GATEWAY_URL": self.gateway_url,
            "RPC_URL": self.rpc_url,
            "WALLET_PRIVATE_KEY": "[PRESENT]" if self.wallet_private_key else "NOT SET",
            "DRY_RUN": self.dry_run,
            "API_ENDPOINT": self.api_endpoint,
        }


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def load_settings(environ: Mapping[str, str] | None = None, env_file: str | None = ".env") -> Settings:
    """Build Settings from the environment, loading ``env_file`` first when given."""
    if environ is None:
        if env_file:
            dotenv.load_dotenv(env_file)
        environ = os.environ

    bot_fid_raw = environ.get("BOT_FID")
    try:
        bot_fid = int(bot_fid_raw) if bot_fid_raw else None
    except ValueError:
        raise ConfigError(f"BOT_FID must be an integer, got {bot_fid_raw!r}")

    port_raw = environ.get("PORT") or "3000"
    try:
        port = int(port_raw)
    except ValueError:
        raise ConfigError(f"PORT must be an integer, got {port_raw!r}")

    api_endpoint = (environ.get("API_ENDPOINT") or f"http://localhost:{port}").rstrip("/")

    return Settings(
        neynar_api_key=environ.get("NEYNAR_API_KEY") or None,
        signer_uuid=environ.get("SIGNER_UUID") or None,
        bot_fid=bot_fid,
        bot_name=environ.get("BOT_NAME") or "zoiner",
        pinata_jwt=(environ.get("PINATA_JWT") or "").strip() or None,
        gateway_url=environ.get("GATEWAY_URL") or DEFAULT_GATEWAY,
        rpc_url=environ.get("RPC_URL") or DEFAULT_RPC_URL,
        wallet_private_key=environ.get("WALLET_PRIVATE_KEY") or None,
        dry_run=_flag(environ.get("DRY_RUN")),
        port=port,
        api_endpoint=api_endpoint,
        default_image_url=environ.get("DEFAULT_IMAGE_URL") or DEFAULT_IMAGE_URL,
    )
