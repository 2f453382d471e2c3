from clinicdesk.core.permissions import IsRole


class IsDashboardAdmin(IsRole):
    allowed_roles = ["admin"]


class CanViewFinancials(IsRole):
    allowed_roles = ["admin", "billing"]


class CanViewPrescriptionStats(IsRole):
    allowed_roles = ["admin", "doctor", "assistant", "nurse"]
