from .adapters import SocialClient, NeynarSocialClient, SocialApiError, create_social_client, format_cast, format_user

__all__ = ["SocialClient", "NeynarSocialClient", "SocialApiError", "create_social_client", "format_cast", "format_user"]
