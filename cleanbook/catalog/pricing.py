"""
Per-service pricing, form validation and form schema.

Each service id maps to one ServicePricing entry. Adding a service is a
data change here, not a new branch in the cart or wizard code.

Usage:
    price = calculate_price("nettoyage-canape", {"numberOfSeats": "3"})  # 140
    ok = is_form_valid("nettoyage-vehicule", {"vehicleType": "petite"})  # False
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_PRICE = 100

VEHICLE_PACK_PRICES: dict[str, dict[str, int]] = {
    "petite": {"M": 70, "L": 110, "Premium": 160},
    "moyenne": {"M": 80, "L": 120, "Premium": 180},
    "grande": {"M": 100, "L": 140, "Premium": 220},
}

VEHICLE_ADDONS: dict[str, int] = {
    "poilsAnimaux": 10,
    "traitementOzone": 80,
    "nettoyageExterieur": 70,
}

SOFA_PRICES: dict[int, int] = {1: 50, 2: 100, 3: 140, 4: 180, 5: 220, 6: 260, 7: 300}

MATTRESS_PRICES: dict[str, int] = {"90-120": 95, "140-160": 135, "180-200": 145}

SEAT_SHAMPOO_RATE = 20


def _as_int(value: Any, default: int) -> int:
    """Leading-integer parse where empty, invalid and zero fall back to default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) or default
    digits = ""
    for ch in str(value or "").strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits and int(digits) else default


def _always_valid(form: dict[str, Any]) -> bool:
    return True


@dataclass(frozen=True)
class FormField:
    """One input of a service-specific form."""

    name: str
    label: str
    kind: str = "text"  # "choice" | "number" | "text" | "flag"
    required: bool = False
    choices: tuple[str, ...] = ()


@dataclass(frozen=True)
class ServicePricing:
    """Pricing rule, completeness check and form schema for one service."""

    service_id: str
    price: Callable[[dict[str, Any]], float]
    validator: Callable[[dict[str, Any]], bool] = _always_valid
    fields: tuple[FormField, ...] = field(default_factory=tuple)


def _vehicle_price(form: dict[str, Any]) -> float:
    size = form.get("vehicleType") or "moyenne"
    price = VEHICLE_PACK_PRICES.get(size, {}).get(form.get("pack") or "", 0)
    for addon, extra in VEHICLE_ADDONS.items():
        if form.get(addon):
            price += extra
    return price


def _sofa_price(form: dict[str, Any]) -> float:
    return SOFA_PRICES.get(_as_int(form.get("numberOfSeats"), 1), SOFA_PRICES[1])


def _mattress_price(form: dict[str, Any]) -> float:
    size = form.get("matressSize") or "90-120"
    return MATTRESS_PRICES.get(size, MATTRESS_PRICES["90-120"])


def _seat_shampoo_price(form: dict[str, Any]) -> float:
    return _as_int(form.get("numberOfSeats"), 1) * SEAT_SHAMPOO_RATE


def _on_quote(form: dict[str, Any]) -> float:
    return 0


def _requires(*names: str) -> Callable[[dict[str, Any]], bool]:
    def check(form: dict[str, Any]) -> bool:
        return all(form.get(name) for name in names)
    return check


_ACCESS = FormField("accessDifficulty", "Difficulté d'accès")

PRICING_REGISTRY: dict[str, ServicePricing] = {
    entry.service_id: entry
    for entry in [
        ServicePricing(
            "nettoyage-vehicule",
            price=_vehicle_price,
            validator=_requires("vehicleType", "pack"),
            fields=(
                FormField("vehicleType", "Taille du véhicule", "choice", True,
                          tuple(VEHICLE_PACK_PRICES)),
                FormField("pack", "Pack", "choice", True, ("M", "L", "Premium")),
                FormField("poilsAnimaux", "Poils d'animaux", "flag"),
                FormField("traitementOzone", "Traitement ozone", "flag"),
                FormField("nettoyageExterieur", "Nettoyage extérieur", "flag"),
            ),
        ),
        ServicePricing(
            "nettoyage-canape",
            price=_sofa_price,
            validator=_requires("numberOfSeats"),
            fields=(
                FormField("numberOfSeats", "Nombre de places", "choice", True,
                          tuple(str(n) for n in SOFA_PRICES)),
            ),
        ),
        ServicePricing(
            "nettoyage-matelas",
            price=_mattress_price,
            validator=_requires("matressSize"),
            fields=(
                FormField("matressSize", "Taille du matelas", "choice", True,
                          tuple(MATTRESS_PRICES)),
            ),
        ),
        ServicePricing(
            "shampooinage-sieges",
            price=_seat_shampoo_price,
            validator=_requires("numberOfSeats"),
            fields=(FormField("numberOfSeats", "Nombre de sièges", "number", True),),
        ),
        ServicePricing(
            "nettoyage-terrasse",
            price=_on_quote,
            validator=_requires("surfaceType"),
            fields=(FormField("surfaceType", "Type de revêtement", "text", True),),
        ),
        ServicePricing(
            "nettoyage-toiture",
            price=_on_quote,
            fields=(
                FormField("roofType", "Type de toiture"),
                FormField("roofSurface", "Surface en m²", "number"),
                _ACCESS,
            ),
        ),
        ServicePricing(
            "autres-services",
            price=_on_quote,
            fields=(
                FormField("serviceDescription", "Description du service"),
                FormField("surfaceArea", "Surface en m²", "number"),
            ),
        ),
        ServicePricing(
            "nettoyage-vitres",
            price=_on_quote,
            fields=(
                FormField("numberOfWindows", "Nombre de fenêtres", "number"),
                FormField("windowType", "Type de fenêtres"),
                _ACCESS,
            ),
        ),
        ServicePricing(
            "nettoyage-moquette-tapis",
            price=_on_quote,
            fields=(
                FormField("surfaceArea", "Surface en m²", "number"),
                FormField("materialType", "Type de matériau"),
                FormField("stainDescription", "Description des taches"),
            ),
        ),
    ]
}


def get_pricing(service_id: str) -> Optional[ServicePricing]:
    return PRICING_REGISTRY.get(service_id)


def calculate_price(service_id: str, form_data: Optional[dict[str, Any]] = None) -> float:
    """Estimated price for a configured service. 0 means priced on quote."""
    entry = PRICING_REGISTRY.get(service_id)
    if entry is None:
        return DEFAULT_PRICE
    return entry.price(form_data or {})


def is_form_valid(service_id: str, form_data: Optional[dict[str, Any]] = None) -> bool:
    """Whether the service form has every option its price depends on."""
    entry = PRICING_REGISTRY.get(service_id)
    if entry is None:
        return True
    return bool(entry.validator(form_data or {}))


def get_form_fields(service_id: str) -> tuple[FormField, ...]:
    entry = PRICING_REGISTRY.get(service_id)
    return entry.fields if entry else ()


def format_service_name(name: str, form_data: Optional[dict[str, Any]]) -> str:
    """Service name with its most telling option, for recaps and admin lists."""
    if not form_data:
        return name
    if form_data.get("pack"):
        return f"{name} - Pack {form_data['pack']}"
    if form_data.get("matressSize"):
        count = form_data.get("numberOfMatresses") or 1
        return f"{name} - {form_data['matressSize']}cm ({count} matelas)"
    if form_data.get("numberOfSeats"):
        return f"{name} - {form_data['numberOfSeats']} place(s)"
    if form_data.get("surfaceType"):
        return f"{name} - {form_data['surfaceType']}"
    if form_data.get("size"):
        return f"{name} - {form_data['size']}"
    return name
