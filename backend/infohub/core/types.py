"""Column types shared by the models"""
import uuid

from sqlalchemy import String, TypeDecorator


def generate_uuid() -> str:
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """
    UUID stored as a 36 character string so the same schema works on
    SQLite and PostgreSQL. Values always come back as ``str``.
    """
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)
