# ==============================================================================
# CAPA DE RUTAS - Blueprints Flask
# ==============================================================================
# Las rutas solo leen la petición, llaman a un servicio y devuelven JSON.
#
# ESTRUCTURA:
# ├── helpers.py    → token, member_required, respond
# ├── auth.py       → /auth/* (OAuth) y /api/auth/*
# ├── products.py   → /api/products (catálogo y administración)
# ├── imports.py    → /api/products/import
# ├── cart.py       → /api/cart
# ├── orders.py     → /api/orders (pedidos, confirmación, chat, auditoría)
# ├── purchasing.py → /api/purchasing
# ├── admin.py      → /api/admin (allowlist, borrar pedidos)
# └── files.py      → /api/files/signed-url, /api/local-file
# ==============================================================================

from orderflow.routes.admin import admin_bp
from orderflow.routes.auth import api_auth_bp, auth_bp
from orderflow.routes.cart import cart_bp
from orderflow.routes.files import files_bp
from orderflow.routes.imports import import_bp
from orderflow.routes.orders import orders_bp
from orderflow.routes.products import products_bp
from orderflow.routes.purchasing import purchasing_bp

BLUEPRINTS = (
    auth_bp,
    api_auth_bp,
    import_bp,
    products_bp,
    cart_bp,
    orders_bp,
    purchasing_bp,
    admin_bp,
    files_bp,
)


def register_blueprints(app):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)


__all__ = ['BLUEPRINTS', 'register_blueprints']
