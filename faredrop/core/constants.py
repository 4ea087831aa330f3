DEFAULT_CURRENCY = 'USD'
LOCATION_CODE_LENGTH = 3
CURRENCY_CODE_LENGTH = 3
HISTORY_DEFAULT_LIMIT = 50
HISTORY_MAX_LIMIT = 500

# Fare quote provider
SNAPSHOT_SOURCE = 'amadeus'
AMADEUS_TOKEN_PATH = '/v1/security/oauth2/token'
AMADEUS_OFFERS_PATH = '/v2/shopping/flight-offers'
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60
TOKEN_TTL_FALLBACK_SECONDS = 30 * 60

SNAPSHOT_PURGE_INTERVAL_MINUTES = 60

# Fields the API may change on an existing watch
UPDATABLE_FIELDS = (
    'price_threshold',
    'departure_date',
    'return_date',
    'is_active',
)
REQUIRED_CREATE_FIELDS = {
    'origin': 'origin',
    'destination': 'destination',
    'departure_date': 'departureDate',
    'price_threshold': 'priceThreshold',
}

CORS_ALLOWED_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
CORS_ALLOWED_HEADERS = [
    'Content-Type',
    'Authorization',
    'X-Amz-Date',
    'X-Api-Key',
    'X-Amz-Security-Token',
    'X-Amz-User-Agent',
]

BOOKING_URL_TEMPLATE = (
    'https://www.google.com/travel/flights?q=Flights%20to%20{destination}'
    '%20from%20{origin}%20on%20{departure_date}'
)
