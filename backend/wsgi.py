# backend/wsgi.py
from retailcore import create_app

app = create_app()
