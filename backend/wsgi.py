# backend/wsgi.py
from mobilepos import create_app

app = create_app()
