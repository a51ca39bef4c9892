"""Service catalog consumed by the cart grid."""

import logging
from typing import Optional

from cleanbook.schemas.cart_schema import ServiceRef

logger = logging.getLogger(__name__)

SERVICE_CATALOG: dict[str, dict] = {
    "nettoyage-vehicule": {
        "name": "Nettoyage véhicule",
        "icon": "Car",
        "description": "Nettoyage intérieur de voiture, packs M, L ou Premium.",
    },
    "nettoyage-canape": {
        "name": "Nettoyage canapé",
        "icon": "Armchair",
        "description": "Nettoyage en profondeur des canapés en tissu, de 1 à 7 places.",
    },
    "nettoyage-matelas": {
        "name": "Nettoyage matelas",
        "icon": "Bed",
        "description": "Désinfection et détachage des matelas toutes tailles.",
    },
    "shampooinage-sieges": {
        "name": "Shampooinage sièges",
        "icon": "Armchair",
        "description": "Shampooinage des chaises et sièges rembourrés, tarif par siège.",
    },
    "nettoyage-moquette-tapis": {
        "name": "Nettoyage moquette et tapis",
        "icon": "Layers",
        "description": "Injection-extraction des moquettes et tapis.",
    },
    "nettoyage-vitres": {
        "name": "Nettoyage vitres",
        "icon": "Droplets",
        "description": "Vitres, cadres et encadrements, accès difficiles compris.",
    },
    "nettoyage-billard": {
        "name": "Nettoyage billard",
        "icon": "CircleDot",
        "description": "Entretien du tapis et des bandes de billard.",
    },
    "nettoyage-terrasse": {
        "name": "Nettoyage terrasse",
        "icon": "SquareDot",
        "description": "Dalles, bois ou pierre naturelle, traitement anti-mousse.",
    },
    "nettoyage-haute-pression": {
        "name": "Nettoyage haute pression",
        "icon": "Droplets",
        "description": "Façades, murets, allées et surfaces extérieures.",
    },
    "nettoyage-toiture": {
        "name": "Nettoyage toiture",
        "icon": "House",
        "description": "Démoussage et nettoyage de toitures.",
    },
    "autres-services": {
        "name": "Autres services",
        "icon": "Wrench",
        "description": "Toute autre demande de nettoyage, sur devis.",
    },
}

# Priced on site; their estimated price never enters the cart total.
QUOTE_ONLY_SERVICES: frozenset[str] = frozenset({
    "nettoyage-terrasse",
    "nettoyage-toiture",
    "autres-services",
    "nettoyage-vitres",
    "nettoyage-moquette-tapis",
})


def is_quote_only(service_id: str) -> bool:
    return service_id in QUOTE_ONLY_SERVICES


def get_all_services() -> list[ServiceRef]:
    """Return every catalog entry in display order."""
    return [ServiceRef(id=sid, **info) for sid, info in SERVICE_CATALOG.items()]


def get_service(service_id: str) -> Optional[ServiceRef]:
    """Look up a catalog entry by id. Returns None if unknown."""
    info = SERVICE_CATALOG.get(service_id.strip().lower())
    if info is None:
        logger.debug("Unknown service id: %s", service_id)
        return None
    return ServiceRef(id=service_id.strip().lower(), **info)
