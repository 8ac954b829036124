"""
Flask settings, loaded with `app.config.from_object(app_config)`.

Sessions are server-side (Flask-Session, filesystem): the browser only holds
a signed, opaque session id. Simple and adequate for a single-instance app.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Secrets must NOT be committed. Set FLASK_SECRET_KEY in the environment.
SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "")

SESSION_TYPE = "filesystem"
SESSION_PERMANENT = False
SESSION_USE_SIGNER = True
SESSION_FILE_DIR = os.environ.get("FLASK_SESSION_DIR") or os.path.join(os.getcwd(), ".flask_session")

SESSION_COOKIE_HTTPONLY = True
# The callback is a cross-site form post from the tenant: the cookie must be
# SameSite=None, which browsers only accept with Secure. http://localhost
# counts as a secure context, so this holds for local runs too.
SESSION_COOKIE_SECURE = os.environ.get("FLASK_COOKIE_SECURE", "true").lower() == "true"
# Without Secure, leave SameSite unset rather than Lax (Lax drops the cookie
# on the callback).
SESSION_COOKIE_SAMESITE = "None" if SESSION_COOKIE_SECURE else None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
