from clinicdesk.core.permissions import RBACPermission


class PrescriptionPermission(RBACPermission):
    """RBAC for /api/prescriptions/*.

    - admin, doctor: read/write (doctors are limited to their own prescriptions)
    - assistant, nurse: read-only
    - billing: no access
    """

    read_roles = {"admin", "doctor", "assistant", "nurse"}
    write_roles = {"admin", "doctor"}


class RefillPermission(RBACPermission):
    """Refills are recorded by front-desk and nursing staff as well."""

    read_roles = {"admin", "doctor", "assistant", "nurse"}
    write_roles = {"admin", "doctor", "assistant", "nurse"}


class SafetyCheckPermission(RBACPermission):
    """POST-only lookup that changes nothing; open to all clinical roles."""

    read_roles = {"admin", "doctor", "assistant", "nurse"}
    write_roles = {"admin", "doctor", "assistant", "nurse"}
