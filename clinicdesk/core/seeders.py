import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from .models import AuditLog, Role

User = get_user_model()

RANDOM_SEED = 42

ROLE_DEFINITIONS = [
    ("admin", "Administrator"),
    ("assistant", "Assistant"),
    ("doctor", "Doctor"),
    ("billing", "Billing"),
    ("nurse", "Nurse"),
]

SEED_USERS = [
    ("dr.miller", "Anna", "Miller", "doctor"),
    ("dr.smith", "Thomas", "Smith", "doctor"),
    ("dr.meyer", "Julia", "Meyer", "doctor"),
    ("nurse1", "Lisa", "Walters", "nurse"),
    ("nurse2", "Mark", "Baker", "nurse"),
    ("assistant1", "Sophie", "Hart", "assistant"),
    ("billing1", "Jonas", "Cruz", "billing"),
    ("billing2", "Klara", "Vogel", "billing"),
]


def seed_core(flush: bool = False) -> dict:
    """
    Seeds roles, users and a few audit log entries.

    With flush=True audit logs and users whose e-mail ends in '@seed.local'
    are deleted first. Superusers are never touched.
    """
    random.seed(RANDOM_SEED)

    stats: dict[str, int] = {}

    with transaction.atomic():
        if flush:
            AuditLog.objects.all().delete()
            User.objects.filter(is_superuser=False, email__endswith="@seed.local").delete()

        roles = _seed_roles()
        stats["core_roles"] = len(roles)

        users = _seed_users(roles)
        stats["core_users"] = len(users)

        stats["core_audit_logs"] = _seed_audit_logs(users)

    return stats


def _seed_roles() -> list[Role]:
    roles: list[Role] = []
    for name, label in ROLE_DEFINITIONS:
        role, _created = Role.objects.get_or_create(name=name, defaults={"label": label})
        roles.append(role)
    return roles


def _seed_users(roles: list[Role]) -> list[User]:
    by_name = {role.name: role for role in roles}
    users: list[User] = []

    if not User.objects.filter(is_superuser=True).exists():
        su = User.objects.create_superuser(
            username="admin",
            email="admin@clinicdesk.local",
            password="admin",
        )
        su.role = by_name["admin"]
        su.save()
        users.append(su)

    for username, first_name, last_name, role_name in SEED_USERS:
        user = User.objects.filter(username=username).first()
        if user is None:
            user = User.objects.create_user(
                username=username,
                email=f"{username}@seed.local",
                password="test1234",
                first_name=first_name,
                last_name=last_name,
            )
        user.role = by_name[role_name]
        user.is_staff = True
        user.save()
        users.append(user)

    return users


def _seed_audit_logs(users: list[User]) -> int:
    if not users:
        return 0

    actions = ["patient_view", "patient_list", "invoice_list", "prescription_view"]
    now = timezone.now()

    count = 0
    for i in range(30):
        user = random.choice(users)
        log = AuditLog.objects.create(
            user=user,
            role_name=user.role.name if user.role else "",
            action=random.choice(actions),
            patient_id=random.randint(1, 20),
            meta={"source": "seed", "info": f"Seed entry {i + 1}"},
        )
        # timestamp is auto_now_add, backdate afterwards
        AuditLog.objects.filter(pk=log.pk).update(
            timestamp=now - timedelta(minutes=random.randint(0, 60 * 24 * 7))
        )
        count += 1

    return count
