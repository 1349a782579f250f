from .change_watcher import ChangeWatcher
from .form_fields import FormField, categorize_field, extract_form_fields, group_by_category

__all__ = ["ChangeWatcher", "FormField", "categorize_field", "extract_form_fields", "group_by_category"]
