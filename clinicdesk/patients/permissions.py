from clinicdesk.core.permissions import RBACPermission


class PatientPermission(RBACPermission):
    """RBAC for patient records.

    - admin: full access, only role that may delete
    - assistant, doctor: read + write
    - nurse, billing: read-only
    """

    read_roles = {"admin", "assistant", "doctor", "nurse", "billing"}
    write_roles = {"admin", "assistant", "doctor"}
    delete_roles = {"admin"}
