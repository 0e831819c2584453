"""User profile entity."""

from dataclasses import dataclass

from tradetalk.domain.entities.persona import Persona


@dataclass(frozen=True)
class UserProfile:
    """Registered user known to the user directory.

    Attributes:
        user_id: Application user ID.
        identity: Phone number the user chats from.
        company_id: Company whose business data the user works with.
        persona: Persona assigned by the classifier, if any.
    """

    user_id: str
    identity: str
    company_id: str | None = None
    persona: Persona | None = None
