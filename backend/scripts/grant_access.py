#!/usr/bin/env python3
"""Share a project or dataset with a collaborator.

Usage:
    python scripts/grant_access.py <resource_type> <resource_id> <principal> [read|update|delete]
    python scripts/grant_access.py --list <resource_type> <resource_id>

Writes to the access_grants table used by the database authorization backend.
"""
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mlcatalog.database import get_session_local
from mlcatalog.errors import CatalogError
from mlcatalog.models import SCOPED_RESOURCE_TYPES
from mlcatalog.models.access_grant import AccessGrant
from mlcatalog.models.resource import ResourceAction
from mlcatalog.services.authorization import DatabaseAuthorizationClient


def grant(resource_type: str, resource_id: str, principal: str, action: str = "read"):
    """Grant ``principal`` an action on one live resource."""
    model = SCOPED_RESOURCE_TYPES.get(resource_type)
    if model is None:
        print(f"Error: unknown resource type '{resource_type}'")
        return False

    SessionLocal = get_session_local()
    db = SessionLocal()

    try:
        resource = db.query(model).filter(model.id == resource_id, model.deleted.is_(False)).first()
        if not resource:
            print(f"Error: {resource_type} '{resource_id}' not found")
            return False

        try:
            action_value = ResourceAction(action)
        except ValueError:
            print(f"Error: action must be one of {', '.join(a.value for a in ResourceAction)}")
            return False

        DatabaseAuthorizationClient(db).grant(resource_type, resource_id, principal, action_value)
        print(f"Granted {action_value.value} on {resource_type} '{resource.name}' to '{principal}'")
        return True

    except CatalogError as e:
        print(f"Error: {e.message}")
        return False
    finally:
        db.close()


def list_grants(resource_type: str, resource_id: str):
    """List collaborators of one resource."""
    SessionLocal = get_session_local()
    db = SessionLocal()

    try:
        grants = db.query(AccessGrant).filter(
            AccessGrant.resource_type == resource_type,
            AccessGrant.resource_id == resource_id,
        ).order_by(AccessGrant.principal, AccessGrant.action).all()
        if not grants:
            print("No collaborators found")
            return

        print(f"\nCollaborators on {resource_type} {resource_id}:")
        print("-" * 60)
        for g in grants:
            print(f"  {g.principal} - {g.action}")
        print("-" * 60)

    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) == 4 and sys.argv[1] == "--list":
        list_grants(sys.argv[2], sys.argv[3])
    elif len(sys.argv) in (4, 5):
        ok = grant(*sys.argv[1:])
        if ok:
            list_grants(sys.argv[1], sys.argv[2])
        sys.exit(0 if ok else 1)
    else:
        print(__doc__)
        sys.exit(2)
