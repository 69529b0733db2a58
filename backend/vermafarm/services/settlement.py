from dataclasses import dataclass

from vermafarm.models import ServiceRequest


@dataclass(frozen=True)
class Settlement:
    revenue: float
    service_charge: float
    farmer_earnings: float


def settle(*, estimated_revenue: float, actual_revenue: float, service_charge_percent: float) -> Settlement:
    """Split realized revenue between the landowner's charge and the farmer.

    ``actual_revenue`` wins over the estimate only when it is positive. The
    farmer's share is derived by subtraction so both parts always add back up
    to ``revenue``.
    """
    revenue = actual_revenue if actual_revenue > 0 else estimated_revenue
    service_charge = revenue * service_charge_percent / 100
    return Settlement(
        revenue=revenue,
        service_charge=service_charge,
        farmer_earnings=revenue - service_charge,
    )


def settle_request(request: ServiceRequest) -> Settlement:
    return settle(
        estimated_revenue=request.estimated_revenue,
        actual_revenue=request.actual_revenue,
        service_charge_percent=request.service_charge_percent,
    )
