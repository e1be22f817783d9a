"""Human readable names for Organization / Brand / Person values."""

from typing import Any, Optional, Union

from infoprovider.schema_reader import PropertyValues, SchemaKind, SchemaThing

__all__ = ["resolve_name", "resolve_first_name"]

NameSource = Union[SchemaThing, PropertyValues, str, None]


def _organization_name(org: SchemaThing) -> Optional[str]:
    return org.get("name").first_non_empty_string() or org.get("legalName").first_non_empty_string()


def _person_name(person: SchemaThing) -> Optional[str]:
    family_name = person.get("familyName").first_non_empty_string()
    if family_name is None:
        return person.get("name").first_non_empty_string()
    given_name = person.get("givenName").first_non_empty_string()
    if given_name is None:
        return family_name
    return f"{given_name} {family_name}"


def resolve_name(entity: NameSource) -> Optional[str]:
    """Extract a name from an entity.

    Organization -> name, else legalName; Brand -> name; Person ->
    "givenName familyName", else familyName, else name. Any other object or a
    raw value is treated as text. ``PropertyValues`` are tried value by value
    until one yields a name.
    """
    if entity is None:
        return None

    if isinstance(entity, PropertyValues):
        for value in entity:
            name = resolve_name(value)
            if name is not None:
                return name
        return None

    if isinstance(entity, SchemaThing):
        if entity.kind is SchemaKind.ORGANIZATION:
            return _organization_name(entity)
        if entity.kind is SchemaKind.BRAND:
            return entity.get("name").first_non_empty_string()
        if entity.kind is SchemaKind.PERSON:
            return _person_name(entity)
        return entity.first_non_empty_string()

    return _text(entity)


def resolve_first_name(*entities: NameSource) -> Optional[str]:
    """Name of the first entity that has one."""
    for entity in entities:
        name = resolve_name(entity)
        if name is not None:
            return name
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
