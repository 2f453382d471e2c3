"""
Widget definitions for the dashboards
"""
from dataclasses import dataclass
from typing import Any, Optional


STATUS_COLORS = {
    'ok': '#34A853',
    'warning': '#FBBC05',
    'critical': '#EA4335',
}

URGENCY_COLORS = {
    'critical': '#EA4335',
    'urgent': '#FF5722',
    'soon': '#FBBC05',
    'upcoming': '#1A73E8',
}


@dataclass
class KPICard:
    """KPI card widget"""
    title: str
    value: Any
    icon: str
    color: str
    status: str = 'ok'
    trend: Optional[dict] = None
    subtitle: Optional[str] = None
    link: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'value': self.value,
            'icon': self.icon,
            'color': self.color,
            'status': self.status,
            'trend': self.trend,
            'subtitle': self.subtitle,
            'link': self.link,
        }


@dataclass
class StatusBadge:
    """Status badge widget"""
    label: str
    count: int
    color: str
    icon: str

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'count': self.count,
            'color': self.color,
            'icon': self.icon,
        }


@dataclass
class ProgressBar:
    """Progress bar widget for rates"""
    label: str
    value: float
    max_value: float = 100.0
    color: str = '#1A73E8'

    @property
    def percent(self) -> float:
        if self.max_value == 0:
            return 0
        return min(100, (self.value / self.max_value) * 100)

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'value': self.value,
            'max_value': self.max_value,
            'percent': round(self.percent, 1),
            'color': self.color,
        }


def _currency(value: float) -> str:
    return f"${value:,.2f}"


def build_billing_cards(billing: dict, financial: Optional[dict] = None) -> list[dict]:
    """Stat cards for the billing dashboard."""
    cards = [
        KPICard(
            title='Total revenue',
            value=_currency(billing['total_revenue']),
            icon='💰',
            color='#1A73E8',
            subtitle=f"{billing['invoice_count']} invoices",
            link='/api/invoices/',
        ),
        KPICard(
            title='Collected',
            value=_currency(billing['collected']),
            icon='✅',
            color='#34A853',
            trend=financial['collected_trend'] if financial else None,
            subtitle=f"{billing['collection_rate']}% collection rate",
            link='/api/payments/',
        ),
        KPICard(
            title='Outstanding',
            value=_currency(billing['outstanding']),
            icon='⏳',
            color=STATUS_COLORS[billing['outstanding_status']],
            status=billing['outstanding_status'],
            link='/api/invoices/?status=pending',
        ),
        KPICard(
            title='Overdue invoices',
            value=billing['overdue_count'],
            icon='⚠️',
            color=STATUS_COLORS[billing['overdue_status']],
            status=billing['overdue_status'],
            link='/api/invoices/?status=overdue',
        ),
    ]
    return [card.to_dict() for card in cards]


def build_prescription_cards(analytics: dict) -> list[dict]:
    adherence = analytics['average_adherence']
    cards = [
        KPICard(
            title='Active prescriptions',
            value=analytics['active'],
            icon='💊',
            color='#1A73E8',
            subtitle=f"{analytics['total']} total",
            link='/api/prescriptions/?status=active',
        ),
        KPICard(
            title='Refills due',
            value=analytics['refills_due'],
            icon='🔁',
            color='#FBBC05' if analytics['refills_due'] else '#34A853',
            status='warning' if analytics['refill_urgency']['critical'] else 'ok',
            subtitle=f"{analytics['refill_urgency']['critical']} critical",
            link='/api/prescriptions/refills/due/',
        ),
        KPICard(
            title='Average adherence',
            value=f"{adherence}%" if adherence is not None else '–',
            icon='📈',
            color='#34A853',
            status='warning' if analytics['low_adherence_count'] else 'ok',
            subtitle=f"{analytics['low_adherence_count']} below target",
        ),
    ]
    return [card.to_dict() for card in cards]


def build_refill_badges(analytics: dict) -> list[dict]:
    icons = {'critical': '🔴', 'urgent': '🟠', 'soon': '🟡', 'upcoming': '🔵'}
    return [
        StatusBadge(
            label=urgency.title(),
            count=count,
            color=URGENCY_COLORS[urgency],
            icon=icons[urgency],
        ).to_dict()
        for urgency, count in analytics['refill_urgency'].items()
    ]


def build_rate_bars(billing: Optional[dict] = None, analytics: Optional[dict] = None) -> list[dict]:
    bars = []
    if billing is not None:
        bars.append(ProgressBar(
            label='Collection rate',
            value=billing['collection_rate'],
            color='#34A853',
        ).to_dict())
    if analytics is not None and analytics['average_adherence'] is not None:
        bars.append(ProgressBar(
            label='Average adherence',
            value=analytics['average_adherence'],
            color='#1A73E8',
        ).to_dict())
    return bars
