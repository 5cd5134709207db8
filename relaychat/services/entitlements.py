"""Per-tier entitlements: daily message quotas and selectable models."""

from dataclasses import dataclass

from relaychat.db.models import UserType

CHAT_MODEL_ID = "chat-model"
REASONING_MODEL_ID = "chat-model-reasoning"


@dataclass(frozen=True)
class Entitlements:
    """Limits applied to an account tier.

    Attributes:
        max_messages_per_day: Messages allowed in a rolling 24-hour window.
        available_model_ids: Model selections the tier may request.
    """

    max_messages_per_day: int
    available_model_ids: tuple[str, ...]


ENTITLEMENTS_BY_USER_TYPE: dict[str, Entitlements] = {
    UserType.guest.value: Entitlements(
        max_messages_per_day=20,
        available_model_ids=(CHAT_MODEL_ID, REASONING_MODEL_ID),
    ),
    UserType.regular.value: Entitlements(
        max_messages_per_day=100,
        available_model_ids=(CHAT_MODEL_ID, REASONING_MODEL_ID),
    ),
}


def get_entitlements(user_type: str) -> Entitlements:
    """Entitlements for a tier; unknown tiers get guest limits."""
    return ENTITLEMENTS_BY_USER_TYPE.get(
        user_type, ENTITLEMENTS_BY_USER_TYPE[UserType.guest.value]
    )


def is_over_quota(user_type: str, message_count: int) -> bool:
    """Whether a 24-hour message count exceeds the tier's quota.

    The check is strictly greater-than: a user at exactly the quota may
    still send.
    """
    return message_count > get_entitlements(user_type).max_messages_per_day
