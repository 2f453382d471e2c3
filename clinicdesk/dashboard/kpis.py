"""
KPI calculations for the practice dashboards.

All figures are computed from the database; money values are returned as
floats rounded to cents so the payloads are plain JSON.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from clinicdesk.billing.models import Invoice, Payment
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.models import Prescription
from clinicdesk.prescriptions.services import adherence_rate, refill_schedule


MEDICATION_CATEGORIES = {
    'Antibiotics': ('amoxicillin', 'penicillin', 'cephalexin'),
    'Pain Management': ('ibuprofen', 'acetaminophen', 'morphine'),
    'Cardiovascular': ('lisinopril', 'metoprolol', 'warfarin'),
    'Diabetes': ('metformin', 'insulin'),
}

EXCLUDED_FROM_REVENUE = (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED)


def _money(value) -> float:
    return float(round(value or Decimal('0'), 2))


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _shift_months(month: date, delta: int) -> date:
    index = month.year * 12 + (month.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def get_date_ranges(today: date | None = None) -> dict[str, tuple[date, date]]:
    """Date ranges used by the KPIs (inclusive bounds)."""
    today = today or timezone.localdate()
    week_start = today - timedelta(days=today.weekday())
    month_start = _month_start(today)
    prev_month_start = _shift_months(month_start, -1)

    return {
        'today': (today, today),
        'week': (week_start, week_start + timedelta(days=6)),
        'month': (month_start, _shift_months(month_start, 1) - timedelta(days=1)),
        'previous_month': (prev_month_start, month_start - timedelta(days=1)),
        'last_30': (today - timedelta(days=29), today),
    }


def calculate_trend(current: float, previous: float) -> dict[str, Any]:
    """Trend indicator; changes within 5% count as neutral."""
    if previous == 0:
        if current > 0:
            return {'direction': 'up', 'percent': 100, 'icon': '↑'}
        return {'direction': 'neutral', 'percent': 0, 'icon': '→'}

    change = ((current - previous) / previous) * 100
    if change > 5:
        return {'direction': 'up', 'percent': round(change, 1), 'icon': '↑'}
    elif change < -5:
        return {'direction': 'down', 'percent': round(abs(change), 1), 'icon': '↓'}
    return {'direction': 'neutral', 'percent': round(abs(change), 1), 'icon': '→'}


def get_patient_kpis() -> dict[str, Any]:
    counts = Patient.objects.using('default').aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(status=Patient.STATUS_ACTIVE)),
    )
    return {
        'total': counts['total'],
        'active': counts['active'],
        'inactive': counts['total'] - counts['active'],
    }


# ============================================================================
# Billing
# ============================================================================
def get_billing_stats(today: date | None = None) -> dict[str, Any]:
    """Revenue, collected, outstanding and overdue figures with status levels."""
    today = today or timezone.localdate()
    billable = Invoice.objects.using('default').exclude(status__in=EXCLUDED_FROM_REVENUE)

    overdue_q = Q(status=Invoice.STATUS_OVERDUE) | Q(
        status__in=(Invoice.STATUS_PENDING, Invoice.STATUS_PARTIALLY_PAID),
        due_date__lt=today,
        balance__gt=0,
    )
    agg = billable.aggregate(
        total_revenue=Sum('total_amount'),
        collected=Sum('amount_paid'),
        outstanding=Sum('balance', filter=Q(status__in=Invoice.OPEN_STATUSES)),
        invoice_count=Count('id'),
        overdue_count=Count('id', filter=overdue_q),
        paid_count=Count('id', filter=Q(status=Invoice.STATUS_PAID)),
    )

    total_revenue = _money(agg['total_revenue'])
    collected = _money(agg['collected'])
    outstanding = _money(agg['outstanding'])
    overdue_count = agg['overdue_count']

    warning_threshold = getattr(settings, 'BILLING_OUTSTANDING_WARNING', 10000)
    critical_overdue = getattr(settings, 'BILLING_OVERDUE_CRITICAL', 5)

    if overdue_count > critical_overdue:
        overdue_status = 'critical'
    elif overdue_count > 0:
        overdue_status = 'warning'
    else:
        overdue_status = 'ok'

    return {
        'total_revenue': total_revenue,
        'collected': collected,
        'outstanding': outstanding,
        'outstanding_status': 'warning' if outstanding > warning_threshold else 'ok',
        'overdue_count': overdue_count,
        'overdue_status': overdue_status,
        'invoice_count': agg['invoice_count'],
        'paid_count': agg['paid_count'],
        'draft_count': Invoice.objects.using('default').filter(status=Invoice.STATUS_DRAFT).count(),
        'collection_rate': round(collected / total_revenue * 100, 1) if total_revenue else 0.0,
    }


def get_monthly_revenue(months: int = 6, today: date | None = None) -> list[dict[str, Any]]:
    """Invoiced vs collected per month, oldest first, current month included."""
    today = today or timezone.localdate()
    current = _month_start(today)
    first = _shift_months(current, -(months - 1))

    invoiced = {
        row['month']: row['total']
        for row in Invoice.objects.using('default')
        .exclude(status__in=EXCLUDED_FROM_REVENUE)
        .filter(invoice_date__gte=first, invoice_date__lte=today)
        .annotate(month=TruncMonth('invoice_date'))
        .values('month')
        .annotate(total=Sum('total_amount'))
    }
    collected = {
        row['month']: row['total']
        for row in Payment.objects.using('default')
        .filter(payment_date__gte=first, payment_date__lte=today)
        .annotate(month=TruncMonth('payment_date'))
        .values('month')
        .annotate(total=Sum('amount'))
    }

    rows = []
    for offset in range(months):
        month = _shift_months(first, offset)
        rows.append({
            'month': month.strftime('%Y-%m'),
            'label': month.strftime('%b %Y'),
            'invoiced': _money(invoiced.get(month)),
            'collected': _money(collected.get(month)),
        })
    return rows


def get_payment_method_breakdown(since: date | None = None) -> list[dict[str, Any]]:
    qs = Payment.objects.using('default')
    if since:
        qs = qs.filter(payment_date__gte=since)

    rows = list(
        qs.values('payment_method')
        .annotate(count=Count('id'), total=Sum('amount'))
        .order_by('-total', 'payment_method')
    )
    grand_total = sum((row['total'] or Decimal('0') for row in rows), Decimal('0'))
    labels = dict(Payment.METHOD_CHOICES)

    return [
        {
            'method': row['payment_method'],
            'label': labels.get(row['payment_method'], row['payment_method']),
            'count': row['count'],
            'total': _money(row['total']),
            'percent': round(float(row['total'] / grand_total * 100), 1) if grand_total else 0.0,
        }
        for row in rows
    ]


def get_top_outstanding_patients(limit: int = 5) -> list[dict[str, Any]]:
    rows = (
        Invoice.objects.using('default')
        .filter(status__in=Invoice.OPEN_STATUSES, balance__gt=0)
        .values('patient_id', 'patient__first_name', 'patient__last_name')
        .annotate(outstanding=Sum('balance'), invoice_count=Count('id'))
        .order_by('-outstanding', 'patient_id')[:limit]
    )
    return [
        {
            'patient_id': row['patient_id'],
            'patient_name': f"{row['patient__first_name']} {row['patient__last_name']}".strip(),
            'outstanding': _money(row['outstanding']),
            'invoice_count': row['invoice_count'],
        }
        for row in rows
    ]


def get_average_payment_days(since: date | None = None) -> float | None:
    """Mean days between invoice date and payment date."""
    qs = Payment.objects.using('default')
    if since:
        qs = qs.filter(payment_date__gte=since)
    pairs = list(qs.values_list('payment_date', 'invoice__invoice_date'))
    if not pairs:
        return None
    total_days = sum(max((paid - issued).days, 0) for paid, issued in pairs)
    return round(total_days / len(pairs), 1)


def get_financial_analytics(months: int = 6, today: date | None = None) -> dict[str, Any]:
    today = today or timezone.localdate()
    ranges = get_date_ranges(today)
    since = _shift_months(_month_start(today), -(months - 1))

    monthly = get_monthly_revenue(months, today)
    current_month = ranges['month']
    previous_month = ranges['previous_month']

    def collected_between(start, end):
        total = Payment.objects.using('default').filter(
            payment_date__gte=start, payment_date__lte=end
        ).aggregate(total=Sum('amount'))['total']
        return _money(total)

    current_collected = collected_between(*current_month)
    previous_collected = collected_between(*previous_month)

    return {
        'months': months,
        'monthly_revenue': monthly,
        'payment_methods': get_payment_method_breakdown(since),
        'top_outstanding_patients': get_top_outstanding_patients(),
        'average_payment_days': get_average_payment_days(since),
        'current_month_collected': current_collected,
        'previous_month_collected': previous_collected,
        'collected_trend': calculate_trend(current_collected, previous_collected),
    }


# ============================================================================
# Prescriptions
# ============================================================================
def get_medication_categories(names: list[str]) -> list[dict[str, Any]]:
    """Keyword-based therapeutic categories; unmatched prescriptions count as Other."""
    lowered = [name.lower() for name in names]
    categories = []
    for category, keywords in MEDICATION_CATEGORIES.items():
        count = sum(1 for name in lowered if any(keyword in name for keyword in keywords))
        categories.append({'category': category, 'count': count})

    categorised = sum(c['count'] for c in categories)
    categories.append({'category': 'Other', 'count': max(len(lowered) - categorised, 0)})
    return categories


def get_prescription_analytics(today: date | None = None) -> dict[str, Any]:
    today = today or timezone.localdate()
    qs = Prescription.objects.using('default')

    by_status = dict(qs.values_list('status').annotate(count=Count('id')).order_by())
    status_distribution = [
        {'status': value, 'label': label, 'count': by_status.get(value, 0)}
        for value, label in Prescription.STATUS_CHOICES
    ]

    top_medications = [
        {'medication_name': row['medication_name'], 'count': row['count']}
        for row in qs.values('medication_name')
        .annotate(count=Count('id'))
        .order_by('-count', 'medication_name')[:10]
    ]

    active = list(
        qs.filter(status=Prescription.STATUS_ACTIVE)
        .select_related('patient')
        .prefetch_related('refill_records')
    )
    rates = [rate for rate in (adherence_rate(rx, today) for rx in active) if rate is not None]
    low_threshold = getattr(settings, 'PRESCRIPTION_LOW_ADHERENCE_PERCENT', 80)

    urgency_counts = {'critical': 0, 'urgent': 0, 'soon': 0, 'upcoming': 0}
    for entry in refill_schedule(active, today=today):
        urgency_counts[entry.urgency] += 1

    return {
        'total': sum(by_status.values()),
        'active': by_status.get(Prescription.STATUS_ACTIVE, 0),
        'status_distribution': status_distribution,
        'top_medications': top_medications,
        'categories': get_medication_categories(list(qs.values_list('medication_name', flat=True))),
        'average_adherence': round(sum(rates) / len(rates), 1) if rates else None,
        'low_adherence_count': sum(1 for rate in rates if rate < low_threshold),
        'monitoring_required': qs.filter(status=Prescription.STATUS_ACTIVE, monitoring_required=True).count(),
        'refill_urgency': urgency_counts,
        'refills_due': sum(urgency_counts.values()),
    }


def get_all_kpis(today: date | None = None) -> dict[str, Any]:
    """Everything the overview dashboard shows."""
    today = today or timezone.localdate()
    return {
        'patients': get_patient_kpis(),
        'billing': get_billing_stats(today),
        'prescriptions': get_prescription_analytics(today),
        'generated_at': timezone.now().isoformat(),
    }
