"""Sessions module - which dataset each phone number is currently talking to."""

from .store import SessionStore
from .directory import AuthorizationDirectory
from .resolver import (
    SessionResolver,
    find_dataset_by_input,
    generate_footer,
    generate_selection_confirmation,
    generate_selection_menu,
    generate_single_dataset_notice,
    is_switch_command,
)

__all__ = [
    'SessionStore',
    'AuthorizationDirectory',
    'SessionResolver',
    'find_dataset_by_input',
    'generate_footer',
    'generate_selection_confirmation',
    'generate_selection_menu',
    'generate_single_dataset_notice',
    'is_switch_command',
]
