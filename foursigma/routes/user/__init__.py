from flask import Blueprint

bp = Blueprint("user", __name__)

from foursigma.routes.user import routes  # noqa: F401, E402
