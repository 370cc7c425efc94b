"""
Mapping between provider names used in URLs / payloads and the stored enum.
"""

from typing import List

from loguru import logger
from sqlalchemy.orm import Session

from auth.models import AuthProviderType, User
from core.exceptions import NotFoundError, ValidationError


def get_supported_providers() -> List[str]:
    return [provider.value.lower() for provider in AuthProviderType]


def is_supported_provider(name: str) -> bool:
    if not name:
        return False
    return name.strip().lower() in get_supported_providers()


def map_string_to_provider(name: str) -> AuthProviderType:
    normalized = (name or "").strip().lower()
    if normalized not in get_supported_providers():
        raise ValidationError(
            f"Unsupported provider: {name}. Supported providers: {', '.join(get_supported_providers())}"
        )
    return AuthProviderType(normalized.upper())


def map_provider_to_string(provider: AuthProviderType) -> str:
    return provider.value.lower()


def list_linked_providers(user: User) -> List[dict]:
    return [provider.to_dict() for provider in sorted(user.providers, key=lambda p: p.linked_at)]


def unlink_provider(db: Session, user: User, name: str) -> AuthProviderType:
    """Remove a sign-in method; the last remaining one cannot be removed."""
    provider_type = map_string_to_provider(name)
    linked = [p for p in user.providers if p.provider == provider_type]
    if not linked:
        raise NotFoundError(f"Provider {map_provider_to_string(provider_type)} is not linked")

    if len(user.providers) <= 1:
        raise ValidationError("Cannot unlink the only authentication method")

    record = linked[0]
    user.providers.remove(record)
    if provider_type == AuthProviderType.LOCAL:
        user.password_hash = None
    if record.is_primary and user.providers:
        user.providers[0].is_primary = True
    db.flush()

    logger.info(f"[PROVIDER_UNLINK] {provider_type.value} unlinked from user {user.id}")
    return provider_type
