"""Utility for resolving person names to IDs."""

from dealerledger.domain.person import PersonService


def resolve_person(person_service: PersonService, person: str) -> str:
    """Resolve a person ID or name to a person ID.

    Args:
        person_service: PersonService instance
        person: Person ID, or a name that matches exactly one person
            (case-insensitive)

    Returns:
        Person ID

    Raises:
        ValueError: If no person matches, or the name matches several
    """
    if person_service.get_person(person) is not None:
        return person

    matches = [p for p in person_service.list_persons() if p.name.lower() == person.strip().lower()]
    if not matches:
        raise ValueError(f"Person '{person}' not found")
    if len(matches) > 1:
        ids = ", ".join(p.id for p in matches)
        raise ValueError(f"Name '{person}' matches several people ({ids}); use the ID")
    return matches[0].id
