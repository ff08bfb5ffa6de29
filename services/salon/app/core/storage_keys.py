"""Base storage keys.

Tenant data keys are always passed through ``TenantScope.scoped_key``; the
directory keys are global and never scoped.
"""

CLIENTS = "beauty-salon-clients"
APPOINTMENTS = "beauty-salon-appointments"
APPOINTMENT_UPDATES = "beauty-salon-appointment-updates"
SERVICES = "beauty-salon-services"
SERVICE_UPDATES = "beauty-salon-service-updates"
PRICE_HISTORY = "beauty-salon-price-history"
PRODUCTS = "beauty-salon-products"
PRODUCT_UPDATES = "beauty-salon-product-updates"
PRODUCT_PRICE_HISTORY = "beauty-salon-product-price-history"
STAFF = "beauty-salon-staff"
STAFF_UPDATES = "beauty-salon-staff-updates"
SETTINGS = "beauty-salon-settings"
SETTINGS_HISTORY = "beauty-salon-settings-history"
THEMES = "beauty-salon-themes"
ACTIVE_THEME = "beauty-salon-active-theme"
ADMIN_USERS = "beauty-salon-admin-users"
LOGIN_ATTEMPTS = "beauty-salon-login-attempts"
CREDENTIAL_UPDATES = "beauty-salon-credential-updates"
REWARD_SETTINGS = "beauty-salon-reward-settings"
REWARD_COUPONS = "beauty-salon-reward-coupons"
REWARD_HISTORY = "beauty-salon-reward-history"
NOTIFICATIONS = "beauty-salon-notification-history"

LEGACY_PREFIX = "beauty-salon-"

# directory (unscoped)
TENANTS = "beauty-app-tenants"
TENANT_OWNERS = "beauty-app-tenant-owners"
CURRENT_TENANT = "beauty-app-current-tenant"
