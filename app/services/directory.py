from sqlalchemy.orm import Session

from app.models.person import Person
from app.services.common import coerce_uuid

UNKNOWN_USER = "Unknown user"


class UserDirectory:
    """Resolves actor ids to display names for audit payloads and listings.

    Never used to decide whether an operation is allowed.
    """

    @staticmethod
    def resolve_user(db: Session, person_id) -> str:
        if person_id is None:
            return UNKNOWN_USER
        person = db.get(Person, coerce_uuid(person_id))
        if not person:
            return UNKNOWN_USER
        return person.display_name or person.email


user_directory = UserDirectory()
