"""Provider modules for the social gateway.

Each provider registers its tools and resources into the operation
registry at startup.
"""

from gateway.registry import OperationRegistry
from shared.logging import get_logger
from providers.base import ProviderContext
from providers.ai import register_ai_provider
from providers.facebook import register_facebook_provider
from providers.instagram import register_instagram_provider
from providers.linkedin import register_linkedin_provider
from providers.twitter import register_twitter_provider

logger = get_logger(__name__)

PROVIDERS = (
    register_linkedin_provider,
    register_twitter_provider,
    register_facebook_provider,
    register_instagram_provider,
    register_ai_provider,
)


def load_all_providers(registry: OperationRegistry, context: ProviderContext) -> None:
    """
    Register every provider's operations.

    Args:
        registry: Registry to populate (must not be frozen yet)
        context: Shared settings, event logger and injection points
    """
    for register in PROVIDERS:
        register(registry, context)

    logger.info(
        "Providers loaded",
        families=registry.list_families(),
        counts=registry.get_operation_count(),
    )


__all__ = ["ProviderContext", "load_all_providers"]
