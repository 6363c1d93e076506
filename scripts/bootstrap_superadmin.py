"""
python -m scripts.bootstrap_superadmin --email owner@example.com --password s3cretpass --organization "Acme"

Creates the first superadmin. Superadmin can only be granted by another
superadmin through the API, so the first one has to come from here.
An existing user or organization with the given email/name is reused.
"""

import argparse

from dotenv import load_dotenv
load_dotenv()

from app.database import SessionLocal
from app.crud.membership import membership as membership_crud
from app.crud.organization import organization as organization_crud
from app.crud.user import user as user_crud
from app.models.organization import Role
from app.schemas.auth import validate_password_policy
from app.schemas.organization import OrganizationCreate


def bootstrap_superadmin(email: str, password: str, organization_name: str, display_name: str = None):
    """Create (or promote) a superadmin of the given organization."""
    db = SessionLocal()

    try:
        user = user_crud.get_by_email(db, email=email)
        if user is None:
            validate_password_policy(password)
            user = user_crud.create(
                db,
                email=email,
                password=password,
                display_name=display_name or email.split("@")[0],
            )
            print(f"Created user: {email}")
        else:
            print(f"Using existing user: {email}")

        organization = organization_crud.get_by_name(db, organization_name)
        if organization is None:
            organization, membership = organization_crud.create_with_admin(
                db, obj_in=OrganizationCreate(name=organization_name), user_id=user.id
            )
            print(f"Created organization: {organization_name}")
        else:
            membership = membership_crud.get_by_user_and_tenant(db, user.id, organization.id)
            if membership is None:
                membership = membership_crud.create(
                    db, user_id=user.id, organization_id=organization.id, role=Role.superadmin
                )

        membership_crud.update(db, db_obj=membership, role=Role.superadmin, is_active=True)
        print(f"\n{email} is superadmin of {organization_name} ({organization.id})")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first superadmin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--organization", required=True)
    parser.add_argument("--display-name", default=None)
    args = parser.parse_args()
    bootstrap_superadmin(args.email, args.password, args.organization, args.display_name)
