# backend/wsgi.py
from supplier_portal import create_app

app = create_app()
