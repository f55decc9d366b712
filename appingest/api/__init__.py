"""UEM REST API plumbing for AppIngest.

Modules:

session : module
    Authenticated requests.Session, run context and failure translation.
groups : module
    Organization group search and selection.
"""

from .groups import OrganizationGroup, search_groups, select_group
from .session import UemContext, make_session, send

__all__ = [
    "OrganizationGroup",
    "UemContext",
    "make_session",
    "search_groups",
    "select_group",
    "send",
]
