from clinicdesk.core.permissions import RBACPermission


class InvoicePermission(RBACPermission):
    """RBAC for /api/invoices/*.

    - admin, billing: full access
    - assistant: read-only (front desk answers balance questions)
    """

    read_roles = {"admin", "billing", "assistant"}
    write_roles = {"admin", "billing"}


class PaymentPermission(RBACPermission):
    """RBAC for /api/payments/* and /api/invoices/<id>/payments/."""

    read_roles = {"admin", "billing", "assistant"}
    write_roles = {"admin", "billing"}
