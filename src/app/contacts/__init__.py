from app.contacts.models import REQUIRED_COLUMNS, ContactRecord, FileFormat

__all__ = ["REQUIRED_COLUMNS", "ContactRecord", "FileFormat"]
