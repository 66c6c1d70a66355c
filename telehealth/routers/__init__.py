# Routers package
from . import auth_router
from . import doctors_router
from . import appointments_router
from . import dashboard_router
