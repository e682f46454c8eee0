# Importing the package loads every model onto Base.metadata in a fixed order.
from . import database  # noqa: F401
