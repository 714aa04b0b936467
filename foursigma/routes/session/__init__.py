from flask import Blueprint

bp = Blueprint("session", __name__)

from foursigma.routes.session import routes  # noqa: F401, E402
