# ==============================================================================
# WSGI - OrderFlow
# ==============================================================================
# Producción:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --workers 2
#
# Sin PLATFORM_URL en el entorno (o en .env) la app arranca sobre la
# plataforma local: tablas JSON en ORDERFLOW_DATA_DIR y archivos en
# FILE_STORAGE_ROOT. Para entrar en local:
#   flask --app wsgi orderflow login-link usuario@firma.no
# ==============================================================================

import os

from orderflow.main import create_app

app = create_app()


if __name__ == '__main__':
    app.run(
        debug=os.environ.get('FLASK_DEBUG') == '1',
        host='127.0.0.1',
        port=int(os.environ.get('PORT', '5000')),
    )
