# backend/wsgi.py
from isms import create_app

app = create_app()
