from cleanbook.integrations.geocoding import Geocoder, GeocodingSuggestion
from cleanbook.integrations.notifications import Notifier, build_confirmation_message

__all__ = ["Geocoder", "GeocodingSuggestion", "Notifier", "build_confirmation_message"]
