from .auth import auth_bp
from .catalog import catalog_bp
from .inventory import inventory_bp
from .reports import reports_bp
from .sales import sales_bp
from .system import system_bp

ALL_BLUEPRINTS = (auth_bp, catalog_bp, inventory_bp, reports_bp, sales_bp, system_bp)
