"""
URL path converters.

Usage:
    from django.urls import path, register_converter

    from core.converters import DatabaseIdConverter

    register_converter(DatabaseIdConverter, "dbid")
    urlpatterns = [path("messages/<dbid:user_id>/", ...)]
"""

# Largest value a BigAutoField primary key can hold
MAX_DB_ID = 2**63 - 1


def fits_db_id(value: int) -> bool:
    """True if value can be a primary key; larger ids overflow the driver."""
    return 0 < value <= MAX_DB_ID


class DatabaseIdConverter:
    """
    Positive integer id that fits a BigAutoField.

    Larger values do not match the route, so they 404 instead of
    reaching the database.
    """

    regex = "[0-9]+"

    def to_python(self, value: str) -> int:
        number = int(value)
        if not fits_db_id(number):
            raise ValueError(f"{value} is not a valid id")
        return number

    def to_url(self, value) -> str:
        return str(value)
