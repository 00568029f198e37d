"""Demand and stock analytics per distributor.

Everything in this module is a heuristic estimate built from ticket
volume. The ratios and the simulated stock baseline are placeholders
read from ``DemandConfig`` until real stock counts are available; they
are not business rules and nothing authoritative depends on them.
"""

import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from devices.models import Ticket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketRecord:
    key: str
    distributor: str
    created: datetime | None
    issue_type: str = ""
    title: str = ""
    label: str = ""

    @classmethod
    def from_model(cls, ticket: Ticket) -> "TicketRecord":
        return cls(
            key=ticket.key,
            distributor=ticket.distributor,
            created=ticket.created,
            issue_type=ticket.issue_type,
            title=ticket.title,
            label=ticket.label,
        )


@dataclass(frozen=True)
class DemandConfig:
    window_days: int = 7
    default_growth: float = 0.1
    high_confidence: int = 50
    low_confidence: int = 10
    ticket_ratio: float = 0.3
    hardware_ratio: float = 0.5
    simulated_coverage: float = 0.7
    hardware_keywords: tuple = ("hardware", "dispositivo", "equipo")
    regional_distributors: tuple = ("EDEN", "EDEA")

    @classmethod
    def from_settings(cls) -> "DemandConfig":
        defaults = cls()
        return cls(
            window_days=getattr(
                settings, "FLEET_DEMAND_WINDOW_DAYS", defaults.window_days
            ),
            default_growth=getattr(
                settings,
                "FLEET_DEMAND_DEFAULT_GROWTH",
                defaults.default_growth,
            ),
            high_confidence=getattr(
                settings,
                "FLEET_DEMAND_HIGH_CONFIDENCE",
                defaults.high_confidence,
            ),
            low_confidence=getattr(
                settings,
                "FLEET_DEMAND_LOW_CONFIDENCE",
                defaults.low_confidence,
            ),
            ticket_ratio=getattr(
                settings, "FLEET_STOCK_TICKET_RATIO", defaults.ticket_ratio
            ),
            hardware_ratio=getattr(
                settings, "FLEET_STOCK_HARDWARE_RATIO", defaults.hardware_ratio
            ),
            simulated_coverage=getattr(
                settings,
                "FLEET_STOCK_SIMULATED_COVERAGE",
                defaults.simulated_coverage,
            ),
        )


@dataclass
class DemandProjection:
    distributor: str
    current_demand: int
    projected_demand: int
    growth_percent: int
    confidence: str
    recommendations: list = field(default_factory=list)


@dataclass
class StockEstimate:
    distributor: str
    ticket_count: int
    hardware_issues: int
    required_stock: int
    current_stock: int
    shortage: int
    priority: str
    is_simulated: bool
    suggested_actions: list = field(default_factory=list)


@dataclass
class MonthlyTrend:
    months: list
    counts: list
    trend: list


def _config(config):
    return config if config is not None else DemandConfig.from_settings()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _by_distributor(records):
    grouped = defaultdict(list)
    for record in records:
        name = (getattr(record, "distributor", "") or "").strip()
        if name:
            grouped[name].append(record)
    return grouped


def _is_hardware(record, config):
    issue_type = (record.issue_type or "").lower()
    return any(word in issue_type for word in config.hardware_keywords)


def growth_rate(records, distributor: str, now: datetime, config=None):
    """Week-over-week ticket growth for one distributor.

    Compares the last ``window_days`` with the window before it. Falls
    back to ``default_growth`` with fewer than two dated tickets or an
    empty prior window.
    """
    config = _config(config)
    # Naive and aware datetimes cannot be compared; such rows are skipped.
    dated = [
        r.created
        for r in records
        if (r.distributor or "").strip() == distributor
        and r.created is not None
        and timezone.is_aware(r.created) == timezone.is_aware(now)
    ]
    if len(dated) < 2:
        return config.default_growth

    window = timedelta(days=config.window_days)
    recent_start = now - window
    prior_start = now - 2 * window
    recent = sum(1 for c in dated if recent_start < c <= now)
    prior = sum(1 for c in dated if prior_start < c <= recent_start)
    if prior == 0:
        return config.default_growth
    return (recent - prior) / prior


def confidence_tier(current: int, config=None) -> str:
    config = _config(config)
    if current > config.high_confidence:
        return "high"
    if current < config.low_confidence:
        return "low"
    return "medium"


def _recommendations(current, growth, distributor, config):
    recommendations = []
    if growth > 0.3:
        recommendations.append(
            f"Alto crecimiento detectado (+{_round_half_up(growth * 100)}%): "
            "aumentar stock preventivo"
        )
        recommendations.append(
            "Revisar capacidad de soporte para demanda creciente"
        )
    elif growth < -0.2:
        recommendations.append(
            "Demanda decreciente: optimizar asignación de recursos"
        )

    if current > 100:
        recommendations.append(
            "Volumen alto de tickets: considerar automatización"
        )
    elif current < 5:
        recommendations.append(
            "Demanda baja: verificar cobertura de servicios"
        )

    if any(tag in distributor for tag in config.regional_distributors):
        recommendations.append(
            "Distribuidora regional: coordinar con oficinas locales"
        )

    if not recommendations:
        recommendations.append("Mantener niveles actuales de stock y soporte")
    return recommendations


def demand_projections(records, now: datetime, config=None):
    """Projected next-period demand per distributor, busiest first."""
    config = _config(config)
    records = list(records)
    projections = []
    for distributor, rows in _by_distributor(records).items():
        current = len(rows)
        growth = growth_rate(rows, distributor, now, config)
        projections.append(
            DemandProjection(
                distributor=distributor,
                current_demand=current,
                projected_demand=_round_half_up(current * (1 + growth)),
                growth_percent=_round_half_up(growth * 100),
                confidence=confidence_tier(current, config),
                recommendations=_recommendations(
                    current, growth, distributor, config
                ),
            )
        )
    projections.sort(key=lambda p: (-p.current_demand, p.distributor))
    return projections


def shortage_priority(shortage: int, required: int) -> str:
    if shortage > required * 0.5:
        return "critical"
    if shortage > required * 0.3:
        return "high"
    if shortage > required * 0.1:
        return "medium"
    return "low"


def _stock_actions(shortage, required, distributor, config):
    actions = []
    if shortage > 0:
        actions.append(f"Reponer {shortage} unidades para cubrir demanda")
        if shortage > required * 0.5:
            actions.append(
                "URGENTE: stock crítico, coordinar reposición inmediata"
            )
            actions.append(
                "Evaluar proveedores alternativos para acelerar entrega"
            )
        elif shortage > required * 0.2:
            actions.append("Planificar reposición en la próxima semana")
    else:
        actions.append("Stock adecuado: mantener niveles actuales")

    if any(tag in distributor for tag in config.regional_distributors):
        actions.append("Coordinar con centro de distribución regional")
    return actions


def stock_analysis(records, current_stock=None, config=None):
    """Estimated stock need and shortage per distributor.

    ``current_stock`` maps distributor name to units on hand. Distributors
    missing from it get a simulated baseline of ``simulated_coverage`` of
    the required figure, flagged with ``is_simulated``.
    """
    config = _config(config)
    current_stock = current_stock or {}
    estimates = []
    for distributor, rows in _by_distributor(records).items():
        tickets = len(rows)
        hardware = sum(1 for r in rows if _is_hardware(r, config))
        # Rounded first so float noise (10 * 0.3) does not bump the ceiling.
        required = math.ceil(
            round(
                tickets * config.ticket_ratio
                + hardware * config.hardware_ratio,
                6,
            )
        )
        if distributor in current_stock:
            on_hand = int(current_stock[distributor])
            simulated = False
        else:
            on_hand = math.floor(
                round(required * config.simulated_coverage, 6)
            )
            simulated = True
        shortage = max(0, required - on_hand)
        estimates.append(
            StockEstimate(
                distributor=distributor,
                ticket_count=tickets,
                hardware_issues=hardware,
                required_stock=required,
                current_stock=on_hand,
                shortage=shortage,
                priority=shortage_priority(shortage, required),
                is_simulated=simulated,
                suggested_actions=_stock_actions(
                    shortage, required, distributor, config
                ),
            )
        )
    estimates.sort(key=lambda e: (-e.shortage, e.distributor))
    return estimates


def monthly_trend(records) -> MonthlyTrend:
    """Tickets per month with a least-squares trend line."""
    counts = Counter(
        r.created.strftime("%Y-%m") for r in records if r.created is not None
    )
    months = sorted(counts)
    values = [counts[m] for m in months]
    n = len(values)
    if n == 0:
        return MonthlyTrend(months=[], counts=[], trend=[])
    if n == 1:
        return MonthlyTrend(months=months, counts=values, trend=values[:])

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    trend = [_round_half_up(slope * x + intercept) for x in xs]
    return MonthlyTrend(months=months, counts=values, trend=trend)


def load_ticket_records(since=None) -> list[TicketRecord]:
    """Read mirrored tickets, optionally only those created after ``since``."""
    qs = Ticket.objects.all()
    if since is not None:
        qs = qs.filter(created__gte=since)
    records = [TicketRecord.from_model(t) for t in qs]
    logger.debug("Loaded %d ticket records", len(records))
    return records
