import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.recon.models import Dealership, Permission, Role, User  # noqa: E402
from app.recon.modules.inspection_settings.service import initialize_default_settings  # noqa: E402
from app.recon.store import settings_store  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

PERMISSIONS = (
    ("admin.view", "Admin: view shell"),
    # Inspection settings
    ("inspection_settings.view", "Inspection Settings: view"),
    ("inspection_settings.edit", "Inspection Settings: edit"),
    # Vehicles
    ("vehicles.view", "Vehicles: view"),
    ("vehicles.create", "Vehicles: create"),
    ("vehicles.edit", "Vehicles: edit (notes, sale state)"),
    # Inspections
    ("inspections.edit", "Inspections: rate items"),
)

# Inspectors rate vehicles but cannot change the checklist.
INSPECTOR_PERMISSIONS = ("vehicles.view", "inspection_settings.view", "inspections.edit")


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions, roles, the default dealership and its admin user, and the
    dealership's inspection settings. Idempotent; never overwrites an existing
    admin password or settings document.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    dealership_name = (os.environ.get("DEALERSHIP_NAME") or "Default Dealership").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///recon.db").strip()

    with script_session(db_url) as s:
        # Permissions (idempotent)
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str, perm_keys) -> Role:
            role = s.query(Role).filter(Role.key == key).one_or_none()
            if not role:
                role = Role(key=key, name=name)
                s.add(role)
            for k in perm_keys:
                p = perms[k]
                if p not in role.permissions:
                    role.permissions.append(p)
            return role

        perms = {key: ensure_perm(key, name) for key, name in PERMISSIONS}
        role_admin = ensure_role("admin", "Administrator", perms)
        ensure_role("inspector", "Inspector", INSPECTOR_PERMISSIONS)

        # Dealership + admin user
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if user and user.dealership_id:
            dealership = s.get(Dealership, user.dealership_id)
        else:
            dealership = s.query(Dealership).filter(Dealership.name == dealership_name).one_or_none()
            if not dealership:
                dealership = Dealership(name=dealership_name, is_active=True)
                s.add(dealership)
                s.flush()

        if not user:
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                is_active=True,
                first_name="Admin",
                initials=(os.environ.get("ADMIN_INITIALS") or "ADM").strip().upper()[:8],
            )
            s.add(user)
        if not user.dealership_id:
            user.dealership_id = dealership.id
        if role_admin not in user.roles:
            user.roles.append(role_admin)
        s.flush()

        created = initialize_default_settings(settings_store(s), dealership.id)

    print("Initialized database (seed_only).")
    print(f"Dealership: {dealership_name}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")
    print(f"Inspection settings: {'created' if created else 'already present'}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
