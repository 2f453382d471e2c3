"""
Dashboard Views

JSON endpoints for the dashboards. Responses are cached for 60 seconds;
permissions are checked before the cache is consulted.
"""
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views.decorators.cache import cache_page

from rest_framework.response import Response
from rest_framework.views import APIView

from .charts import get_financial_charts, get_prescription_charts
from .kpis import (
    get_all_kpis,
    get_billing_stats,
    get_financial_analytics,
    get_prescription_analytics,
)
from .permissions import CanViewFinancials, CanViewPrescriptionStats, IsDashboardAdmin
from .widgets import (
    build_billing_cards,
    build_prescription_cards,
    build_rate_bars,
    build_refill_badges,
)


class DashboardOverviewView(APIView):
    """GET /api/dashboard/ - practice overview (admin)."""

    permission_classes = [IsDashboardAdmin]

    @method_decorator(cache_page(60))
    def get(self, request):
        kpis = get_all_kpis()

        return Response({
            'kpis': kpis,
            'kpi_cards': build_billing_cards(kpis['billing']) + build_prescription_cards(kpis['prescriptions']),
            'status_badges': build_refill_badges(kpis['prescriptions']),
            'rate_bars': build_rate_bars(kpis['billing'], kpis['prescriptions']),
            'charts': get_prescription_charts(kpis['prescriptions']),
        })


class BillingDashboardView(APIView):
    """GET /api/dashboard/billing/ - billing stat cards."""

    permission_classes = [CanViewFinancials]

    @method_decorator(cache_page(60))
    def get(self, request):
        billing = get_billing_stats()

        return Response({
            'stats': billing,
            'kpi_cards': build_billing_cards(billing),
            'rate_bars': build_rate_bars(billing=billing),
            'generated_at': timezone.now().isoformat(),
        })


class FinancialDashboardView(APIView):
    """GET /api/dashboard/financial/?months=6 - revenue analytics."""

    permission_classes = [CanViewFinancials]

    @method_decorator(cache_page(60))
    def get(self, request):
        raw = (request.query_params.get('months') or '6').strip()
        try:
            months = int(raw)
        except ValueError:
            return Response({'detail': 'months must be an integer.'}, status=400)
        if months < 1 or months > 24:
            return Response({'detail': 'months must be between 1 and 24.'}, status=400)

        financial = get_financial_analytics(months)
        billing = get_billing_stats()

        return Response({
            'analytics': financial,
            'kpi_cards': build_billing_cards(billing, financial),
            'charts': get_financial_charts(financial),
            'generated_at': timezone.now().isoformat(),
        })


class PrescriptionDashboardView(APIView):
    """GET /api/dashboard/prescriptions/ - prescription analytics."""

    permission_classes = [CanViewPrescriptionStats]

    @method_decorator(cache_page(60))
    def get(self, request):
        analytics = get_prescription_analytics()

        return Response({
            'analytics': analytics,
            'kpi_cards': build_prescription_cards(analytics),
            'status_badges': build_refill_badges(analytics),
            'charts': get_prescription_charts(analytics),
            'generated_at': timezone.now().isoformat(),
        })
