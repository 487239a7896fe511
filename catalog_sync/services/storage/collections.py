"""Names of the document collections used by the service."""

PRODUCTS = "products"
CATEGORIES = "categories"
INVENTORY = "inventory"
MEDIA = "whatsapp_media"
ORDERS = "orders"
NOTIFICATIONS = "order_notifications"
BUSINESSES = "businesses"
BUSINESS_SETTINGS = "business_settings"
WHATSAPP_CONFIGS = "whatsapp_configs"
ANALYTICS = "whatsapp_analytics"
