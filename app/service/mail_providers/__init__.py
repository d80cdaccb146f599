"""Mail service providers module.

Provider naming:
    - "xxx": Built-in provider (e.g., "smtp")
    - "a.b.c": Absolute module path exporting ``MailServiceProvider``
"""

import asyncio
import importlib

from app.config import settings

from ._base import MailDeliveryError, MailServiceProvider

PROVIDER: MailServiceProvider | None = None
_init_lock = asyncio.Lock()


async def init_provider(
    provider: str | None = None,
    provider_config: dict | None = None,
) -> MailServiceProvider:
    """Initialize the global mail service provider.

    Args:
        provider: Provider name. Defaults to ``settings.email_provider``.
        provider_config: Keyword arguments for the provider. Defaults to
            ``settings.email_provider_config``.

    Returns:
        The initialized provider. An already initialized provider is reused.

    Raises:
        ImportError: If the provider module cannot be imported.
    """
    global PROVIDER
    async with _init_lock:
        if PROVIDER is not None:
            return PROVIDER

        provider = provider or settings.email_provider
        provider_config = settings.email_provider_config if provider_config is None else provider_config
        try:
            if "." not in provider:
                module = importlib.import_module(f".{provider}", package="app.service.mail_providers")
            else:
                module = importlib.import_module(provider)
            provider_class = getattr(module, "MailServiceProvider")
        except (ImportError, AttributeError) as e:
            raise ImportError(f"Failed to import mail service provider '{provider}'") from e

        instance = provider_class(**provider_config)
        await instance.init()
        PROVIDER = instance
        return instance


def set_provider(provider: MailServiceProvider | None) -> None:
    """Replace the global provider, or clear it with None."""
    global PROVIDER
    PROVIDER = provider


async def get_provider() -> MailServiceProvider:
    if PROVIDER is None:
        return await init_provider()
    return PROVIDER


__all__ = [
    "MailDeliveryError",
    "MailServiceProvider",
    "get_provider",
    "init_provider",
    "set_provider",
]
