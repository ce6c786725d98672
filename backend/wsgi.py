# backend/wsgi.py
from routewise import create_app

app = create_app()
