# ==============================================================================
# ORDERFLOW - Pedidos internos y compras
# ==============================================================================
# App factory: orderflow.main.create_app
# WSGI:        wsgi.py (gunicorn wsgi:app)
# ==============================================================================

__version__ = "1.0.0"
