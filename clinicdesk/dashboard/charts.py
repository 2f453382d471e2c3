"""
Chart data for the dashboards.
Payloads follow the Chart.js ``{labels, datasets}`` shape.
"""
from typing import Any

from .kpis import get_financial_analytics, get_prescription_analytics


METHOD_COLORS = {
    'cash': '#34A853',
    'credit_card': '#1A73E8',
    'debit_card': '#00BCD4',
    'insurance': '#9334E6',
    'bank_transfer': '#FBBC05',
    'check': '#795548',
    'other': '#9AA0A6',
}

PRESCRIPTION_STATUS_COLORS = {
    'active': '#34A853',
    'on_hold': '#FBBC05',
    'completed': '#1A73E8',
    'discontinued': '#EA4335',
}


def get_revenue_trend_chart(financial: dict[str, Any] | None = None, months: int = 6) -> dict[str, Any]:
    """Line chart: invoiced vs collected per month."""
    financial = financial or get_financial_analytics(months)
    monthly = financial['monthly_revenue']

    return {
        'labels': [row['label'] for row in monthly],
        'datasets': [
            {
                'label': 'Invoiced',
                'data': [row['invoiced'] for row in monthly],
                'borderColor': '#1A73E8',
                'backgroundColor': 'rgba(26, 115, 232, 0.1)',
                'fill': True,
                'tension': 0.4,
            },
            {
                'label': 'Collected',
                'data': [row['collected'] for row in monthly],
                'borderColor': '#34A853',
                'backgroundColor': 'rgba(52, 168, 83, 0.1)',
                'fill': True,
                'tension': 0.4,
            },
        ]
    }


def get_payment_methods_chart(financial: dict[str, Any] | None = None, months: int = 6) -> dict[str, Any]:
    """Doughnut chart: collected amount by payment method."""
    financial = financial or get_financial_analytics(months)
    methods = financial['payment_methods']

    return {
        'labels': [row['label'] for row in methods],
        'datasets': [{
            'data': [row['total'] for row in methods],
            'backgroundColor': [METHOD_COLORS.get(row['method'], '#9AA0A6') for row in methods],
            'borderWidth': 0,
        }]
    }


def get_prescription_status_chart(analytics: dict[str, Any] | None = None) -> dict[str, Any]:
    """Pie chart: prescriptions per status."""
    analytics = analytics or get_prescription_analytics()
    rows = analytics['status_distribution']

    return {
        'labels': [row['label'] for row in rows],
        'datasets': [{
            'data': [row['count'] for row in rows],
            'backgroundColor': [PRESCRIPTION_STATUS_COLORS.get(row['status'], '#9AA0A6') for row in rows],
            'borderWidth': 0,
        }]
    }


def get_medication_categories_chart(analytics: dict[str, Any] | None = None) -> dict[str, Any]:
    """Bar chart: prescriptions per therapeutic category."""
    analytics = analytics or get_prescription_analytics()
    rows = analytics['categories']

    return {
        'labels': [row['category'] for row in rows],
        'datasets': [{
            'label': 'Prescriptions',
            'data': [row['count'] for row in rows],
            'backgroundColor': '#1A73E8',
            'borderRadius': 8,
        }]
    }


def get_financial_charts(financial: dict[str, Any]) -> dict[str, Any]:
    return {
        'revenue_trend': get_revenue_trend_chart(financial),
        'payment_methods': get_payment_methods_chart(financial),
    }


def get_prescription_charts(analytics: dict[str, Any]) -> dict[str, Any]:
    return {
        'prescription_status': get_prescription_status_chart(analytics),
        'medication_categories': get_medication_categories_chart(analytics),
    }
