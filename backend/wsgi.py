# backend/wsgi.py
from fieldstock import create_app

app = create_app()
