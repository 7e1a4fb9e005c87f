# config/settings/local.py
import os

os.environ.setdefault("DB_ENGINE", "sqlite")

from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"
